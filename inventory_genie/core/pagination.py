"""
Paginated Listing
=================

The iteration contract every table follows when listing a paginated API::

    wait for rate limit -> fetch page -> stream rows -> check row budget
        -> advance cursor -> repeat

Provider errors are classified on the way out: ignorable errors end the
listing quietly with whatever was already streamed; every other error is
logged and re-raised unchanged.

Paging Strategies
-----------------
TotalCountPaging
    Page number plus a total count in the response.
NextTokenPaging
    Opaque cursor (``NextToken``, or IAM/RDS ``Marker``).
ExhaustionPaging
    Page number, stopping on the first empty page.
SinglePage
    One request, no continuation.

The AWS APIs behind the current tables page by cursor or not at all, so
only ``NextTokenPaging`` and ``SinglePage`` are used by ``inventory_genie.tables``.
``TotalCountPaging`` and ``ExhaustionPaging`` cover the page-number APIs of
the iteration contract and are exercised by the pagination tests.

Example
-------
>>> stream_pages(
...     d,
...     fetch=lambda req: ec2.describe_vpcs(**req),
...     request={"MaxResults": d.page_size(1000, 5)},
...     items=lambda resp: resp.get("Vpcs", []),
...     paging=NextTokenPaging(),
...     service="ec2",
...     action="DescribeVpcs",
... )
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from inventory_genie.core.error_handling import log_query_error, should_ignore_error
from inventory_genie.core.query import QueryData

logger = logging.getLogger(__name__)

Request = Dict[str, Any]
Response = Dict[str, Any]


class PagingStrategy(ABC):
    """Decides the next request from the current one and its response."""

    @abstractmethod
    def advance(
        self, request: Request, response: Response, page: List[Any]
    ) -> Optional[Request]:
        """Return the next request, or None when the listing is complete."""
        pass


class SinglePage(PagingStrategy):
    def advance(self, request, response, page):
        return None


class NextTokenPaging(PagingStrategy):
    """
    Cursor paging.

    Parameters
    ----------
    request_key : str, default="NextToken"
        Request parameter carrying the cursor.
    response_key : str, default="NextToken"
        Response field holding the next cursor.
    truncated_key : str, optional
        Response flag that must be true to continue (IAM ``IsTruncated``).
    """

    def __init__(
        self,
        request_key: str = "NextToken",
        response_key: Optional[str] = None,
        truncated_key: Optional[str] = None,
    ) -> None:
        self.request_key = request_key
        self.response_key = response_key or request_key
        self.truncated_key = truncated_key

    def advance(self, request, response, page):
        if self.truncated_key and not response.get(self.truncated_key):
            return None
        token = response.get(self.response_key)
        if not token:
            return None
        return {**request, self.request_key: token}


class TotalCountPaging(PagingStrategy):
    """
    Page-number paging with a total count.

    Stops once ``page_number * page_size`` reaches the total, or on an empty
    page.
    """

    def __init__(
        self,
        page_key: str = "PageNumber",
        size_key: str = "PageSize",
        total_key: str = "TotalCount",
    ) -> None:
        self.page_key = page_key
        self.size_key = size_key
        self.total_key = total_key

    def advance(self, request, response, page):
        if not page:
            return None
        number = request.get(self.page_key, 1)
        size = request.get(self.size_key) or len(page)
        total = response.get(self.total_key, 0)
        if number * size >= total:
            return None
        return {**request, self.page_key: number + 1}


class ExhaustionPaging(PagingStrategy):
    """Page-number paging that stops on the first empty page."""

    def __init__(self, page_key: str = "PageNumber") -> None:
        self.page_key = page_key

    def advance(self, request, response, page):
        if not page:
            return None
        return {**request, self.page_key: request.get(self.page_key, 1) + 1}


def stream_pages(
    d: QueryData,
    fetch: Callable[[Request], Response],
    request: Request,
    items: Callable[[Response], Iterable[Any]],
    paging: PagingStrategy,
    service: str,
    action: str,
    ignore_codes: Sequence[str] = (),
) -> int:
    """
    List every page of an API into ``d``.

    Parameters
    ----------
    d : QueryData
        Listing handle; receives every item via ``stream_list_item``.
    fetch : callable
        Performs one request and returns its response.
    request : dict
        First request's parameters.
    items : callable
        Extracts the items of a response.
    paging : PagingStrategy
        Continuation rule.
    service, action : str
        Rate-limit scope, e.g. ``("ec2", "DescribeVpcs")``.
    ignore_codes : sequence of str
        Error-code patterns ignored in addition to the configured ones.

    Returns
    -------
    int
        Number of rows added to ``d``. Items the row transform drops are
        not counted.

    Raises
    ------
    botocore.exceptions.ClientError, botocore.exceptions.BotoCoreError
        Non-ignorable provider errors, unchanged.
    """
    streamed = 0
    current: Optional[Request] = dict(request)
    while current is not None:
        if d.rows_remaining() <= 0:
            return streamed

        d.wait_for_list_rate_limit(service, action)
        try:
            response = fetch(current)
        except (ClientError, BotoCoreError) as e:
            if should_ignore_error(e, d.config, ignore_codes):
                logger.debug(
                    f"{d.table}: {action} in {d.region or 'global'} "
                    f"ignored: {e}"
                )
                return streamed
            log_query_error(e, d.config, d.table, d.region, action)
            raise

        page = list(items(response))
        for item in page:
            before = len(d.rows)
            if not d.stream_list_item(item):
                return streamed
            streamed += len(d.rows) - before
            if d.rows_remaining() <= 0:
                return streamed

        current = paging.advance(current, response, page)

    return streamed


__all__ = [
    "ExhaustionPaging",
    "NextTokenPaging",
    "PagingStrategy",
    "SinglePage",
    "TotalCountPaging",
    "stream_pages",
]
