"""
Query Data
==========

The per-listing handle a table receives: qualifiers, the row sink, the
shared row budget and the rate-limit gate.

One :class:`QueryData` is built per region branch. Branches of the same
query share one :class:`RowBudget` so that ``LIMIT`` is honoured across the
whole fan-out, not per region.
"""

from __future__ import annotations

import logging
import sys
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional

from inventory_genie.core.context import ConnectionContext

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

UNLIMITED = sys.maxsize


class RowBudget:
    """
    Thread-safe count of rows still wanted by the caller.

    Parameters
    ----------
    limit : int, optional
        Maximum rows for the whole query. ``None`` means unlimited.
    """

    def __init__(self, limit: Optional[int] = None) -> None:
        if limit is not None and limit < 0:
            raise ValueError("limit must be >= 0")
        self.limit = limit
        self._remaining = UNLIMITED if limit is None else limit
        self._lock = threading.Lock()

    def take(self) -> bool:
        """Consume one row. Returns False if the budget was already spent."""
        with self._lock:
            if self._remaining <= 0:
                return False
            if self.limit is not None:
                self._remaining -= 1
            return True

    def remaining(self) -> int:
        with self._lock:
            return self._remaining

    def __repr__(self) -> str:
        return f"RowBudget(limit={self.limit}, remaining={self.remaining()})"


@dataclass
class QueryData:
    """
    Listing handle passed to a table's ``list`` and ``get``.

    Attributes
    ----------
    connection : ConnectionContext
        Execution context shared by every branch.
    table : str
        Name of the table being listed.
    region : str, optional
        Region of this branch. ``None`` for global tables.
    quals : dict
        Equality qualifiers (column name to value).
    budget : RowBudget
        Row budget shared by every branch.
    transform : callable, optional
        Turns a raw API item into a row before it reaches the sink.
    rows : list
        Rows streamed by this branch, in order.
    """

    connection: ConnectionContext
    table: str
    region: Optional[str] = None
    quals: Dict[str, Any] = field(default_factory=dict)
    budget: RowBudget = field(default_factory=RowBudget)
    transform: Optional[Callable[[Any, QueryData], Optional[Row]]] = None
    rows: List[Row] = field(default_factory=list)

    @property
    def config(self):
        return self.connection.config

    def for_region(self, region: Optional[str]) -> QueryData:
        """Return a branch handle for ``region`` sharing budget and quals."""
        return replace(self, region=region, rows=[])

    def client(self, service: str) -> Any:
        """Return this branch's client for ``service``."""
        return self.connection.clients.get_client(service, self.region)

    # =========================================================================
    # Qualifiers
    # =========================================================================

    def equals_qual_string(self, name: str) -> Optional[str]:
        """Return the equality qualifier ``name`` as a string, if given."""
        value = self.quals.get(name)
        if value is None or isinstance(value, (list, tuple)):
            return None
        return str(value)

    def equals_qual_list(self, name: str) -> List[str]:
        """Return the qualifier ``name`` as a list of strings."""
        value = self.quals.get(name)
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        return [str(value)]

    def equals_qual_bool(self, name: str) -> Optional[bool]:
        """Return the qualifier ``name`` as a bool, accepting true/false text."""
        value = self.quals.get(name)
        if value is None or isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in ("true", "1", "yes"):
            return True
        if text in ("false", "0", "no"):
            return False
        return None

    # =========================================================================
    # Streaming
    # =========================================================================

    def stream_list_item(self, item: Any) -> bool:
        """
        Emit one item as a row.

        The transform runs before the row budget is charged: an item whose
        transform raises, or returns None because the resource vanished
        between list and hydrate, costs no budget.

        Returns
        -------
        bool
            False once the row budget is spent; True otherwise, including
            when the transform dropped the item.
        """
        if self.budget.remaining() <= 0:
            return False
        row = self.transform(item, self) if self.transform else item
        if row is None:
            logger.debug(f"{self.table}: item dropped by row transform")
            return True
        if not self.budget.take():
            return False
        self.rows.append(row)
        return True

    def rows_remaining(self) -> int:
        """Rows still wanted across the whole query; 0 means stop."""
        return self.budget.remaining()

    def page_size(self, maximum: int, minimum: int = 1) -> int:
        """
        Request page size with the row budget pushed down.

        Returns ``maximum`` unless fewer rows remain, never going below
        ``minimum`` (many APIs reject small page sizes).
        """
        remaining = self.rows_remaining()
        if remaining < maximum:
            return max(remaining, minimum)
        return maximum

    def wait_for_list_rate_limit(self, service: str, action: str) -> None:
        """Block on the execution context's rate limiter."""
        self.connection.rate_limiter.wait(service, action)

    def __repr__(self) -> str:
        return (
            f"QueryData(table='{self.table}', region={self.region!r}, "
            f"quals={self.quals!r})"
        )
