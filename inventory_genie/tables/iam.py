"""
IAM Tables
==========

Users, roles and the account credential report. IAM is a global service:
every table here runs a single branch against the default-region client.

User rows are hydrated with their groups, attached managed policies and
MFA devices; role rows with their attached managed policies. Every
hydrate page runs under the general retry policy, and a user or role
deleted between the list and the hydrate is skipped.

Classes
-------
IAMUserTable
    ``aws_iam_user``, with a lookup by ``name``.
IAMRoleTable
    ``aws_iam_role``, with a lookup by ``name``.
IAMCredentialReportTable
    ``aws_iam_credential_report``: one row per user of the credential
    report, generating the report first when none is available.

Notes
-----
The credential report is generated asynchronously. When
``GetCredentialReport`` answers ``ReportNotPresent`` or ``ReportExpired``,
the table requests a new report and polls with the report polling policy
(10 retries from a 1 s seed) until it is ready.
"""

from __future__ import annotations

import csv
import io
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from inventory_genie.core.base_table import BaseTable
from inventory_genie.core.error_handling import error_code, log_query_error, should_ignore_error
from inventory_genie.core.exceptions import ReportTimeoutError
from inventory_genie.core.pagination import NextTokenPaging, stream_pages
from inventory_genie.core.query import QueryData, Row
from inventory_genie.core.retry import GENERAL, REPORT_POLL, is_throttling_error, with_retry
from inventory_genie.tables.common import get_common_columns
from inventory_genie.tables.utils import iso, null_if_marker, tags_to_map, to_bool

logger = logging.getLogger(__name__)

GLOBAL = "global"

REPORT_MISSING_CODES = ("ReportNotPresent", "ReportExpired")
REPORT_PENDING_CODES = ("ReportInProgress", "ReportNotPresent")


def _marker_paging() -> NextTokenPaging:
    return NextTokenPaging(
        request_key="Marker", response_key="Marker", truncated_key="IsTruncated"
    )


def list_marker_pages(
    call: Callable[..., Dict[str, Any]],
    key: str,
    sleep: Callable[[float], None],
    description: str,
    **params: Any,
) -> List[Any]:
    """
    Collect every item of a per-entity IAM listing.

    Each ``Marker`` page is fetched under the general retry policy. Errors,
    including ``NoSuchEntity`` for an entity deleted since it was listed,
    propagate to the caller.
    """
    found: List[Any] = []
    request = dict(params)
    while True:
        response = with_retry(
            lambda: call(**request),
            policy=GENERAL,
            sleep=sleep,
            description=description,
        )
        found.extend(response.get(key, []))
        if not response.get("IsTruncated") or not response.get("Marker"):
            return found
        request["Marker"] = response["Marker"]


class IAMUserTable(BaseTable):
    """IAM users."""

    name = "aws_iam_user"
    description = "AWS IAM User"
    service = "iam"
    list_action = "ListUsers"
    regional = False
    get_key_columns = ("name",)
    not_found_codes = ("NoSuchEntity",)

    def __init__(self, sleep: Callable[[float], None] = time.sleep) -> None:
        self.sleep = sleep

    def list(self, d: QueryData) -> None:
        iam = d.connection.clients.get_iam_client()
        request: Dict[str, Any] = {"MaxItems": d.page_size(1000, 1)}
        path = d.equals_qual_string("path")
        if path:
            request["PathPrefix"] = path

        stream_pages(
            d,
            fetch=lambda req: iam.list_users(**req),
            request=request,
            items=lambda resp: resp.get("Users", []),
            paging=_marker_paging(),
            service=self.service,
            action=self.list_action,
        )

    def get(self, d: QueryData) -> Optional[Dict[str, Any]]:
        iam = d.connection.clients.get_iam_client()
        name = d.equals_qual_string("name")
        response = with_retry(
            lambda: iam.get_user(UserName=name),
            policy=GENERAL,
            sleep=self.sleep,
            description="iam:GetUser",
        )
        return response.get("User")

    def hydrate(self, d: QueryData, user_name: str) -> Dict[str, Any]:
        """Fetch the group, policy and MFA listings of one user."""
        iam = d.connection.clients.get_iam_client()
        groups = list_marker_pages(
            iam.list_groups_for_user, "Groups", self.sleep,
            "iam:ListGroupsForUser", UserName=user_name,
        )
        policies = list_marker_pages(
            iam.list_attached_user_policies, "AttachedPolicies", self.sleep,
            "iam:ListAttachedUserPolicies", UserName=user_name,
        )
        devices = list_marker_pages(
            iam.list_mfa_devices, "MFADevices", self.sleep,
            "iam:ListMFADevices", UserName=user_name,
        )
        return {
            "groups": [g.get("GroupName") for g in groups],
            "attached_policy_arns": [p.get("PolicyArn") for p in policies],
            "mfa_enabled": bool(devices),
            "mfa_devices": [
                {
                    "serial_number": m.get("SerialNumber"),
                    "enable_date": iso(m.get("EnableDate")),
                }
                for m in devices
            ],
        }

    def to_row(self, item: Dict[str, Any], d: QueryData) -> Optional[Row]:
        try:
            details = self.hydrate(d, item["UserName"])
        except ClientError as e:
            if error_code(e) not in self.not_found_codes:
                raise
            logger.debug(f"{self.name}: user {item['UserName']} deleted after listing")
            return None

        common = get_common_columns(d)
        boundary = item.get("PermissionsBoundary") or {}
        return {
            "name": item["UserName"],
            "user_id": item.get("UserId"),
            "arn": item.get("Arn"),
            "path": item.get("Path"),
            "create_date": iso(item.get("CreateDate")),
            "password_last_used": iso(item.get("PasswordLastUsed")),
            "permissions_boundary_arn": boundary.get("PermissionsBoundaryArn"),
            **details,
            "title": item["UserName"],
            "tags": tags_to_map(item.get("Tags")),
            "akas": [item.get("Arn")],
            "region": GLOBAL,
            **common.as_columns(),
        }


class IAMRoleTable(BaseTable):
    """IAM roles."""

    name = "aws_iam_role"
    description = "AWS IAM Role"
    service = "iam"
    list_action = "ListRoles"
    regional = False
    get_key_columns = ("name",)
    not_found_codes = ("NoSuchEntity",)

    def __init__(self, sleep: Callable[[float], None] = time.sleep) -> None:
        self.sleep = sleep

    def list(self, d: QueryData) -> None:
        iam = d.connection.clients.get_iam_client()
        request: Dict[str, Any] = {"MaxItems": d.page_size(1000, 1)}
        path = d.equals_qual_string("path")
        if path:
            request["PathPrefix"] = path

        stream_pages(
            d,
            fetch=lambda req: iam.list_roles(**req),
            request=request,
            items=lambda resp: resp.get("Roles", []),
            paging=_marker_paging(),
            service=self.service,
            action=self.list_action,
        )

    def get(self, d: QueryData) -> Optional[Dict[str, Any]]:
        iam = d.connection.clients.get_iam_client()
        name = d.equals_qual_string("name")
        response = with_retry(
            lambda: iam.get_role(RoleName=name),
            policy=GENERAL,
            sleep=self.sleep,
            description="iam:GetRole",
        )
        return response.get("Role")

    def to_row(self, item: Dict[str, Any], d: QueryData) -> Optional[Row]:
        iam = d.connection.clients.get_iam_client()
        try:
            policies = list_marker_pages(
                iam.list_attached_role_policies, "AttachedPolicies", self.sleep,
                "iam:ListAttachedRolePolicies", RoleName=item["RoleName"],
            )
        except ClientError as e:
            if error_code(e) not in self.not_found_codes:
                raise
            logger.debug(f"{self.name}: role {item['RoleName']} deleted after listing")
            return None

        common = get_common_columns(d)
        last_used = item.get("RoleLastUsed") or {}
        return {
            "name": item["RoleName"],
            "role_id": item.get("RoleId"),
            "arn": item.get("Arn"),
            "path": item.get("Path"),
            "description": item.get("Description"),
            "create_date": iso(item.get("CreateDate")),
            "max_session_duration": item.get("MaxSessionDuration"),
            "assume_role_policy": item.get("AssumeRolePolicyDocument"),
            "role_last_used_date": iso(last_used.get("LastUsedDate")),
            "role_last_used_region": last_used.get("Region"),
            "attached_policy_arns": [p.get("PolicyArn") for p in policies],
            "title": item["RoleName"],
            "tags": tags_to_map(item.get("Tags")),
            "akas": [item.get("Arn")],
            "region": GLOBAL,
            **common.as_columns(),
        }


class IAMCredentialReportTable(BaseTable):
    """
    One row per user of the IAM credential report.

    Parameters
    ----------
    sleep : callable, default=time.sleep
        Used between polls while the report is generated.
    """

    name = "aws_iam_credential_report"
    description = "AWS IAM Credential Report"
    service = "iam"
    list_action = "GetCredentialReport"
    regional = False

    def __init__(self, sleep: Callable[[float], None] = time.sleep) -> None:
        self.sleep = sleep

    def list(self, d: QueryData) -> None:
        iam = d.connection.clients.get_iam_client()
        d.wait_for_list_rate_limit(self.service, self.list_action)
        try:
            report = self._fetch_report(iam)
        except (ClientError, BotoCoreError) as e:
            if should_ignore_error(e, d.config):
                logger.debug(f"{self.name}: ignoring error: {e}")
                return
            log_query_error(e, d.config, self.name, request=self.list_action)
            raise

        generated = iso(report.get("GeneratedTime"))
        for record in parse_credential_report(report["Content"]):
            record["generated_time"] = generated
            d.stream_list_item(record)
            if d.rows_remaining() <= 0:
                return

    def _fetch_report(self, iam: Any) -> Dict[str, Any]:
        try:
            return iam.get_credential_report()
        except ClientError as e:
            if error_code(e) not in REPORT_MISSING_CODES:
                raise
            logger.info(f"Credential report unavailable ({error_code(e)}), generating")

        iam.generate_credential_report()
        try:
            return with_retry(
                iam.get_credential_report,
                policy=REPORT_POLL,
                is_retryable=lambda err: (
                    error_code(err) in REPORT_PENDING_CODES or is_throttling_error(err)
                ),
                sleep=self.sleep,
                description="iam:GetCredentialReport",
            )
        except ClientError as e:
            if error_code(e) in REPORT_PENDING_CODES:
                raise ReportTimeoutError(
                    "Timed out waiting for credential report generation",
                    table=self.name,
                    details={"attempts": REPORT_POLL.max_attempts},
                ) from e
            raise

    def to_row(self, item: Dict[str, str], d: QueryData) -> Row:
        common = get_common_columns(d)
        row: Row = {
            "user_name": item.get("user"),
            "user_arn": item.get("arn"),
            "user_creation_time": null_if_marker(item.get("user_creation_time")),
            "password_enabled": to_bool(item.get("password_enabled")),
            "password_last_used": null_if_marker(item.get("password_last_used")),
            "password_last_changed": null_if_marker(item.get("password_last_changed")),
            "password_next_rotation": null_if_marker(
                item.get("password_next_rotation")
            ),
            "mfa_active": to_bool(item.get("mfa_active")),
        }
        for n in (1, 2):
            prefix = f"access_key_{n}"
            row[f"{prefix}_active"] = to_bool(item.get(f"{prefix}_active"))
            row[f"{prefix}_last_rotated"] = null_if_marker(
                item.get(f"{prefix}_last_rotated")
            )
            row[f"{prefix}_last_used_date"] = null_if_marker(
                item.get(f"{prefix}_last_used_date")
            )
            row[f"{prefix}_last_used_region"] = null_if_marker(
                item.get(f"{prefix}_last_used_region")
            )
            row[f"{prefix}_last_used_service"] = null_if_marker(
                item.get(f"{prefix}_last_used_service")
            )
        for n in (1, 2):
            row[f"cert_{n}_active"] = to_bool(item.get(f"cert_{n}_active"))
            row[f"cert_{n}_last_rotated"] = null_if_marker(
                item.get(f"cert_{n}_last_rotated")
            )
        row.update(
            {
                "generated_time": item.get("generated_time"),
                "title": item.get("user"),
                "akas": [item.get("arn")],
                "region": GLOBAL,
                **common.as_columns(),
            }
        )
        return row


def parse_credential_report(content: Any) -> List[Dict[str, str]]:
    """
    Parse the CSV body of a credential report.

    Parameters
    ----------
    content : bytes or str
        ``Content`` of a ``GetCredentialReport`` response; boto3 has
        already base64-decoded it.

    Returns
    -------
    list of dict
        One record per CSV row, keyed by column header.
    """
    if isinstance(content, bytes):
        content = content.decode("utf-8")
    return list(csv.DictReader(io.StringIO(content)))
