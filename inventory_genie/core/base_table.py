"""
Base Table Module
=================

Provides the abstract base class for every resource table.

A table maps one AWS list (and optionally get) operation onto flat rows.
It declares which service and action it calls, whether it fans out over
regions, and which qualifiers turn a listing into a single lookup.

Classes
-------
BaseTable
    Abstract base class for resource tables.

Example
-------
>>> class KeyPairTable(BaseTable):
...     name = "aws_ec2_key_pair"
...     service = "ec2"
...     list_action = "DescribeKeyPairs"
...
...     def list(self, d):
...         ec2 = d.client("ec2")
...         stream_pages(d, lambda req: ec2.describe_key_pairs(**req), {},
...                      lambda resp: resp["KeyPairs"], SinglePage(),
...                      self.service, self.list_action)
...
...     def to_row(self, item, d):
...         return {"key_name": item["KeyName"], "region": d.region}

Notes
-----
``list`` streams raw API items through ``d.stream_list_item``; the item is
turned into a row by ``to_row`` on the way into the sink. Provider errors
propagate out of ``list`` after the pagination layer has classified them.

See Also
--------
inventory_genie.core.pagination.stream_pages : The listing loop.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from inventory_genie.core.error_handling import not_found_predicate
from inventory_genie.core.query import QueryData, Row

logger = logging.getLogger(__name__)


class BaseTable(ABC):
    """
    Abstract base class for resource tables.

    Class Attributes
    ----------------
    name : str
        Table name, e.g. ``aws_vpc``.
    description : str
        One-line description shown by ``inventory-genie tables``.
    service : str
        boto3 service name.
    list_action : str
        API action used for listing; also the rate-limit scope.
    regional : bool
        True to fan out over every configured region; False for a single
        call with the default-region (global) client.
    get_key_columns : tuple of str
        Qualifiers that, when all present, select ``get`` over ``list``.
    not_found_codes : tuple of str
        Error codes that mean "no such resource" for ``get``.
    """

    name: str = ""
    description: str = ""
    service: str = ""
    list_action: str = ""
    regional: bool = True
    get_key_columns: Tuple[str, ...] = ()
    not_found_codes: Tuple[str, ...] = ()

    @abstractmethod
    def list(self, d: QueryData) -> None:
        """
        Stream every item of this branch into ``d``.

        Parameters
        ----------
        d : QueryData
            Listing handle for one region branch.
        """
        pass

    def get(self, d: QueryData) -> Optional[Any]:
        """
        Look up a single item by the ``get_key_columns`` qualifiers.

        Returns
        -------
        object or None
            The raw item, or None if it does not exist.
        """
        return None

    @abstractmethod
    def to_row(self, item: Any, d: QueryData) -> Optional[Row]:
        """
        Turn a raw API item into a flat row dictionary.

        Returning None drops the item, for a resource that disappeared
        between the list call and a hydrate.
        """
        pass

    # =========================================================================
    # Execution
    # =========================================================================

    @property
    def supports_get(self) -> bool:
        return bool(self.get_key_columns) and type(self).get is not BaseTable.get

    def use_get(self, quals: Dict[str, Any]) -> bool:
        """Return True if ``quals`` name every get key column."""
        return self.supports_get and all(
            quals.get(column) not in (None, "", [])
            for column in self.get_key_columns
        )

    def get_item(self, d: QueryData) -> Optional[Any]:
        """
        Run ``get`` treating not-found and ignorable errors as no row.
        """
        predicate = not_found_predicate(self.not_found_codes)
        try:
            return self.get(d)
        except (ClientError, BotoCoreError) as e:
            if predicate(e, d.config):
                logger.debug(f"{self.name}: get found nothing: {e}")
                return None
            raise

    def execute(self, d: QueryData) -> None:
        """
        Run one branch: a single ``get`` when the key qualifiers are
        present, otherwise a full ``list``.
        """
        d.transform = self.to_row
        if self.use_get(d.quals):
            item = self.get_item(d)
            if item is not None:
                d.stream_list_item(item)
            return
        self.list(d)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"name='{self.name}', "
            f"service='{self.service}', "
            f"regional={self.regional})"
        )
