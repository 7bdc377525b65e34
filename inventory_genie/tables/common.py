"""
Common Columns
==============

Account-level columns shared by every table, fetched once per execution
context from STS ``GetCallerIdentity``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

from inventory_genie.core.query import QueryData
from inventory_genie.core.retry import with_retry

logger = logging.getLogger(__name__)

_CACHE_KEY = "common_columns"


@dataclass(frozen=True)
class CommonColumns:
    """
    Account identity of the execution context.

    Attributes
    ----------
    account_id : str
        12-digit account id.
    partition : str
        ARN partition (``aws``, ``aws-cn``, ``aws-us-gov``).
    """

    account_id: str
    partition: str

    def as_columns(self) -> Dict[str, Any]:
        return {"account_id": self.account_id, "partition": self.partition}


def _fetch_common_columns(d: QueryData) -> CommonColumns:
    sts = d.connection.clients.get_sts_client()
    identity = with_retry(
        sts.get_caller_identity, description="sts:GetCallerIdentity"
    )
    partition = identity["Arn"].split(":")[1]
    logger.debug(f"Caller account {identity['Account']} in partition {partition}")
    return CommonColumns(account_id=identity["Account"], partition=partition)


def get_common_columns(d: QueryData) -> CommonColumns:
    """
    Return the context's :class:`CommonColumns`, fetching them on first use.
    """
    return d.connection.cached(_CACHE_KEY, lambda: _fetch_common_columns(d))
