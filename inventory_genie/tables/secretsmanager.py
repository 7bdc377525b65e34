"""
Secrets Manager Table
=====================

``aws_secretsmanager_secret``: secret metadata (never secret values).

Each listed secret is hydrated with ``DescribeSecret`` for the rotation and
replication details ``ListSecrets`` omits, and with
``ListSecretVersionIds`` for its version ids. Both hydrates retry throttling
with the general policy; a secret deleted between list and describe keeps
its list columns and has no version ids.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from botocore.exceptions import ClientError

from inventory_genie.core.base_table import BaseTable
from inventory_genie.core.error_handling import error_code
from inventory_genie.core.pagination import NextTokenPaging, stream_pages
from inventory_genie.core.query import QueryData, Row
from inventory_genie.core.retry import GENERAL, with_retry
from inventory_genie.tables.common import get_common_columns
from inventory_genie.tables.utils import iso, tags_to_map

logger = logging.getLogger(__name__)


class SecretsManagerSecretTable(BaseTable):
    """Secrets Manager secrets."""

    name = "aws_secretsmanager_secret"
    description = "AWS Secrets Manager Secret"
    service = "secretsmanager"
    list_action = "ListSecrets"
    get_key_columns = ("arn",)
    not_found_codes = ("ResourceNotFoundException",)

    def __init__(self, sleep: Callable[[float], None] = time.sleep) -> None:
        self.sleep = sleep

    def list(self, d: QueryData) -> None:
        client = d.client("secretsmanager")
        request: Dict[str, Any] = {"MaxResults": d.page_size(100, 1)}
        names = d.equals_qual_list("name")
        if names:
            request["Filters"] = [{"Key": "name", "Values": names}]

        stream_pages(
            d,
            fetch=lambda req: client.list_secrets(**req),
            request=request,
            items=lambda resp: resp.get("SecretList", []),
            paging=NextTokenPaging(),
            service=self.service,
            action=self.list_action,
        )

    def get(self, d: QueryData) -> Optional[Dict[str, Any]]:
        return self.describe_secret(d, d.equals_qual_string("arn"))

    def describe_secret(self, d: QueryData, secret_id: str) -> Dict[str, Any]:
        client = d.client("secretsmanager")
        return with_retry(
            lambda: client.describe_secret(SecretId=secret_id),
            policy=GENERAL,
            sleep=self.sleep,
            description="secretsmanager:DescribeSecret",
        )

    def list_version_ids(self, d: QueryData, secret_id: str) -> List[str]:
        """Return the ids of every version of a secret, following NextToken."""
        client = d.client("secretsmanager")
        version_ids: List[str] = []
        request: Dict[str, Any] = {"SecretId": secret_id, "MaxResults": 100}
        while True:
            response = with_retry(
                lambda: client.list_secret_version_ids(**request),
                policy=GENERAL,
                sleep=self.sleep,
                description="secretsmanager:ListSecretVersionIds",
            )
            version_ids.extend(v["VersionId"] for v in response.get("Versions", []))
            if not response.get("NextToken"):
                return version_ids
            request["NextToken"] = response["NextToken"]

    def to_row(self, item: Dict[str, Any], d: QueryData) -> Row:
        details = item
        version_ids: Optional[List[str]] = None
        # DescribeSecret responses carry VersionIdsToStages; ListSecrets
        # entries carry SecretVersionsToStages instead
        try:
            if "VersionIdsToStages" not in item:
                details = self.describe_secret(d, item["ARN"])
            version_ids = self.list_version_ids(d, item["ARN"])
        except ClientError as e:
            if error_code(e) not in self.not_found_codes:
                raise
            logger.debug(f"Secret {item['ARN']} deleted after listing")

        rotation = details.get("RotationRules") or {}
        return {
            "name": details.get("Name"),
            "arn": details.get("ARN"),
            "description": details.get("Description"),
            "kms_key_id": details.get("KmsKeyId"),
            "rotation_enabled": details.get("RotationEnabled", False),
            "rotation_lambda_arn": details.get("RotationLambdaARN"),
            "rotation_rule_days": rotation.get("AutomaticallyAfterDays"),
            "created_date": iso(details.get("CreatedDate")),
            "last_accessed_date": iso(details.get("LastAccessedDate")),
            "last_changed_date": iso(details.get("LastChangedDate")),
            "last_rotated_date": iso(details.get("LastRotatedDate")),
            "deleted_date": iso(details.get("DeletedDate")),
            "primary_region": details.get("PrimaryRegion"),
            "version_ids": version_ids,
            "replication_status": [
                {"region": r.get("Region"), "status": r.get("Status")}
                for r in details.get("ReplicationStatus", [])
            ],
            "title": details.get("Name"),
            "tags": tags_to_map(details.get("Tags")),
            "akas": [details.get("ARN")],
            "region": d.region,
            **get_common_columns(d).as_columns(),
        }
