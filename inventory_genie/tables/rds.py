"""
RDS Table
=========

``aws_rds_db_instance``: database instances, paged with ``Marker``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from inventory_genie.core.base_table import BaseTable
from inventory_genie.core.pagination import NextTokenPaging, stream_pages
from inventory_genie.core.query import QueryData, Row
from inventory_genie.tables.common import get_common_columns
from inventory_genie.tables.utils import iso, tags_to_map

logger = logging.getLogger(__name__)


class RDSDBInstanceTable(BaseTable):
    """RDS DB instances."""

    name = "aws_rds_db_instance"
    description = "AWS RDS DB Instance"
    service = "rds"
    list_action = "DescribeDBInstances"
    get_key_columns = ("db_instance_identifier",)
    not_found_codes = ("DBInstanceNotFound", "DBInstanceNotFoundFault")

    def list(self, d: QueryData) -> None:
        rds = d.client("rds")
        request: Dict[str, Any] = {"MaxRecords": d.page_size(100, 20)}
        engines = d.equals_qual_list("engine")
        if engines:
            request["Filters"] = [{"Name": "engine", "Values": engines}]

        stream_pages(
            d,
            fetch=lambda req: rds.describe_db_instances(**req),
            request=request,
            items=lambda resp: resp.get("DBInstances", []),
            paging=NextTokenPaging(request_key="Marker"),
            service=self.service,
            action=self.list_action,
        )

    def get(self, d: QueryData) -> Optional[Dict[str, Any]]:
        rds = d.client("rds")
        d.wait_for_list_rate_limit(self.service, self.list_action)
        response = rds.describe_db_instances(
            DBInstanceIdentifier=d.equals_qual_string("db_instance_identifier")
        )
        instances = response.get("DBInstances", [])
        return instances[0] if instances else None

    def to_row(self, item: Dict[str, Any], d: QueryData) -> Row:
        endpoint = item.get("Endpoint") or {}
        subnet_group = item.get("DBSubnetGroup") or {}
        identifier = item["DBInstanceIdentifier"]
        return {
            "db_instance_identifier": identifier,
            "arn": item.get("DBInstanceArn"),
            "class": item.get("DBInstanceClass"),
            "engine": item.get("Engine"),
            "engine_version": item.get("EngineVersion"),
            "status": item.get("DBInstanceStatus"),
            "allocated_storage": item.get("AllocatedStorage"),
            "storage_type": item.get("StorageType"),
            "storage_encrypted": item.get("StorageEncrypted"),
            "multi_az": item.get("MultiAZ"),
            "publicly_accessible": item.get("PubliclyAccessible"),
            "availability_zone": item.get("AvailabilityZone"),
            "endpoint_address": endpoint.get("Address"),
            "endpoint_port": endpoint.get("Port"),
            "vpc_id": subnet_group.get("VpcId"),
            "create_time": iso(item.get("InstanceCreateTime")),
            "title": identifier,
            "tags": tags_to_map(item.get("TagList")),
            "akas": [item.get("DBInstanceArn")],
            "region": d.region,
            **get_common_columns(d).as_columns(),
        }
