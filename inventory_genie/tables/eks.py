"""
EKS Table
=========

``aws_eks_cluster``: Kubernetes clusters, one ``DescribeCluster`` hydrate
per listed name. A cluster deleted between the list and the describe
call is skipped.

EKS is not offered in every region; in those regions the endpoint host
does not resolve and the listing ends quietly through the error
classifier.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

from botocore.exceptions import ClientError

from inventory_genie.core.base_table import BaseTable
from inventory_genie.core.error_handling import error_code
from inventory_genie.core.pagination import NextTokenPaging, stream_pages
from inventory_genie.core.query import QueryData, Row
from inventory_genie.core.retry import with_retry
from inventory_genie.tables.common import get_common_columns
from inventory_genie.tables.utils import iso

logger = logging.getLogger(__name__)


class EKSClusterTable(BaseTable):
    """EKS clusters."""

    name = "aws_eks_cluster"
    description = "AWS Elastic Kubernetes Service (EKS) Cluster"
    service = "eks"
    list_action = "ListClusters"
    get_key_columns = ("name",)
    not_found_codes = ("ResourceNotFoundException",)

    def __init__(self, sleep: Callable[[float], None] = time.sleep) -> None:
        self.sleep = sleep

    def list(self, d: QueryData) -> None:
        eks = d.client("eks")
        stream_pages(
            d,
            fetch=lambda req: eks.list_clusters(**req),
            request={"maxResults": d.page_size(100, 1)},
            items=lambda resp: resp.get("clusters", []),
            paging=NextTokenPaging(request_key="nextToken"),
            service=self.service,
            action=self.list_action,
        )

    def get(self, d: QueryData) -> Optional[Dict[str, Any]]:
        return self.describe_cluster(d, d.equals_qual_string("name"))

    def describe_cluster(self, d: QueryData, name: str) -> Dict[str, Any]:
        eks = d.client("eks")
        response = with_retry(
            lambda: eks.describe_cluster(name=name),
            sleep=self.sleep,
            description="eks:DescribeCluster",
        )
        return response["cluster"]

    def to_row(self, item: Any, d: QueryData) -> Optional[Row]:
        if isinstance(item, str):
            try:
                cluster = self.describe_cluster(d, item)
            except ClientError as e:
                if error_code(e) not in self.not_found_codes:
                    raise
                logger.debug(f"{self.name}: cluster {item} deleted after listing")
                return None
        else:
            cluster = item
        vpc = cluster.get("resourcesVpcConfig") or {}
        return {
            "name": cluster.get("name"),
            "arn": cluster.get("arn"),
            "version": cluster.get("version"),
            "platform_version": cluster.get("platformVersion"),
            "status": cluster.get("status"),
            "endpoint": cluster.get("endpoint"),
            "role_arn": cluster.get("roleArn"),
            "created_at": iso(cluster.get("createdAt")),
            "vpc_id": vpc.get("vpcId"),
            "subnet_ids": vpc.get("subnetIds", []),
            "security_group_ids": vpc.get("securityGroupIds", []),
            "endpoint_public_access": vpc.get("endpointPublicAccess"),
            "endpoint_private_access": vpc.get("endpointPrivateAccess"),
            "title": cluster.get("name"),
            "tags": cluster.get("tags") or None,
            "akas": [cluster.get("arn")],
            "region": d.region,
            **get_common_columns(d).as_columns(),
        }
