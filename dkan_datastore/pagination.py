"""Offset/limit arithmetic for datastore searches.

The first page of a search is always requested at offset 0.  Its
response tells us the total number of matching records and the page
size the portal actually applied; from those two numbers and the
caller's ``max_records`` these helpers decide which further offsets to
request and how many rows the final table keeps.
"""

from __future__ import annotations

import math
from typing import List, Optional

from .errors import SchemaError
from .query_builder import PAGE_SIZE


def target_row_count(total: int, max_records: Optional[int]) -> int:
    """Number of rows the assembled table should contain."""
    if max_records is None:
        return total
    return min(max_records, total)


def plan_page_offsets(
    total: int,
    limit: int,
    max_records: Optional[int] = None,
    page_size: int = PAGE_SIZE,
) -> List[int]:
    """Return the offsets of the pages to fetch after the first one.

    Parameters
    ----------
    total : int
        Total number of matching records reported by the first page.
    limit : int
        Records per page reported by the first page.
    max_records : int, optional
        Caller's cap on the number of records.  When it fits in a
        single page no further pages are fetched.
    page_size : int
        Largest page the portal serves.

    Returns
    -------
    list of int
        ``[limit, 2 * limit, ...]``, enough to cover the remainder page
        when ``total`` is not a multiple of ``limit`` and without an
        extra empty page when it is.

    Raises
    ------
    SchemaError
        If records remain to be fetched but ``limit`` is not positive.
    """
    if max_records is not None and max_records <= page_size:
        return []

    wanted = target_row_count(total, max_records)
    if wanted <= 0:
        return []
    if limit <= 0:
        raise SchemaError(
            f"datastore reported limit={limit} with {total} records to fetch"
        )

    pages = math.ceil(wanted / limit)
    return [page * limit for page in range(1, pages)]


__all__ = ["plan_page_offsets", "target_row_count"]
