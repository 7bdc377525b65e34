"""
Systems Manager Tables
======================

``aws_ssm_managed_instance``: hosts running the SSM agent, both EC2
instances and hybrid (``mi-``) machines registered through activations.

The agent columns (``ping_status``, ``agent_version``,
``is_latest_version``) report whether each host is still reachable by
Systems Manager.

Notes
-----
``DescribeInstanceInformation`` pages with ``NextToken`` and accepts at
most 50 results per page. Filtering on an unknown instance id fails with
``InvalidInstanceId`` instead of returning an empty page.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from inventory_genie.core.base_table import BaseTable
from inventory_genie.core.pagination import NextTokenPaging, stream_pages
from inventory_genie.core.query import QueryData, Row
from inventory_genie.tables.common import get_common_columns
from inventory_genie.tables.utils import build_arn, iso

logger = logging.getLogger(__name__)


def instance_filters(d: QueryData) -> List[Dict[str, Any]]:
    """Translate qualifiers into ``InstanceInformationStringFilter`` entries."""
    filters = []
    for column, key in (
        ("instance_id", "InstanceIds"),
        ("ping_status", "PingStatus"),
        ("platform_type", "PlatformTypes"),
        ("resource_type", "ResourceType"),
    ):
        values = d.equals_qual_list(column)
        if values:
            filters.append({"Key": key, "Values": values})
    return filters


class SSMManagedInstanceTable(BaseTable):
    """Instances managed by the Systems Manager agent."""

    name = "aws_ssm_managed_instance"
    description = "AWS SSM Managed Instance"
    service = "ssm"
    list_action = "DescribeInstanceInformation"
    get_key_columns = ("instance_id",)
    not_found_codes = ("InvalidInstanceId",)

    def list(self, d: QueryData) -> None:
        ssm = d.client("ssm")
        request: Dict[str, Any] = {"MaxResults": d.page_size(50, 5)}
        filters = instance_filters(d)
        if filters:
            request["Filters"] = filters

        stream_pages(
            d,
            fetch=lambda req: ssm.describe_instance_information(**req),
            request=request,
            items=lambda resp: resp.get("InstanceInformationList", []),
            paging=NextTokenPaging(),
            service=self.service,
            action=self.list_action,
            ignore_codes=self.not_found_codes,
        )

    def get(self, d: QueryData) -> Optional[Dict[str, Any]]:
        ssm = d.client("ssm")
        d.wait_for_list_rate_limit(self.service, self.list_action)
        response = ssm.describe_instance_information(
            Filters=[
                {"Key": "InstanceIds", "Values": [d.equals_qual_string("instance_id")]}
            ]
        )
        instances = response.get("InstanceInformationList", [])
        return instances[0] if instances else None

    def to_row(self, item: Dict[str, Any], d: QueryData) -> Row:
        common = get_common_columns(d)
        instance_id = item["InstanceId"]
        if instance_id.startswith("mi-"):
            arn = build_arn(
                common.partition, "ssm", d.region, common.account_id,
                f"managed-instance/{instance_id}",
            )
        else:
            arn = build_arn(
                common.partition, "ec2", d.region, common.account_id,
                f"instance/{instance_id}",
            )
        return {
            "instance_id": instance_id,
            "computer_name": item.get("ComputerName"),
            "name": item.get("Name"),
            "resource_type": item.get("ResourceType"),
            "ping_status": item.get("PingStatus"),
            "last_ping_date_time": iso(item.get("LastPingDateTime")),
            "agent_version": item.get("AgentVersion"),
            "is_latest_version": item.get("IsLatestVersion"),
            "platform_type": item.get("PlatformType"),
            "platform_name": item.get("PlatformName"),
            "platform_version": item.get("PlatformVersion"),
            "ip_address": item.get("IPAddress"),
            "activation_id": item.get("ActivationId"),
            "iam_role": item.get("IamRole"),
            "registration_date": iso(item.get("RegistrationDate")),
            "association_status": item.get("AssociationStatus"),
            "last_association_execution_date": iso(
                item.get("LastAssociationExecutionDate")
            ),
            "title": item.get("ComputerName") or instance_id,
            "akas": [arn],
            "region": d.region,
            **common.as_columns(),
        }
