"""
Records Parser Module
=====================

This module turns decoded datastore search responses into Python
structures and, ultimately, into a :class:`pandas.DataFrame`.

A DKAN datastore search answers with a JSON document shaped like::

    {
        "help": "...",
        "success": true,
        "result": {
            "total": "250",
            "limit": "100",
            "records": [{"PWSID": "CA3010037", ...}, ...],
            ...
        }
    }

:func:`parse_page` extracts ``result.total``, ``result.limit`` and
``result.records`` by name (portals report the counts either as
numbers or as numeric strings) and :func:`build_table` assembles the
records of every page into one table.

Functions
---------
parse_page(payload, url=None) -> DatastorePage
    Validate a decoded response and return its counts and records.
build_table(records, columns=None) -> pandas.DataFrame
    Build the result table, using the column set of the first record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from .errors import SchemaError


@dataclass
class DatastorePage:
    """Counts and rows extracted from a single search response.

    Attributes
    ----------
    total : int
        Number of records matching the query across all pages.
    limit : int
        Number of records per page applied by the portal.
    records : list of dict
        The rows of this page, in server order.
    """

    total: int
    limit: int
    records: List[Dict[str, Any]] = field(default_factory=list)


def _as_count(result: Mapping[str, Any], key: str, url: Optional[str]) -> int:
    if key not in result:
        raise SchemaError(f"datastore response has no result.{key}", url=url)
    raw = result[key]
    try:
        # "250", 250 and 250.0 are all seen in the wild.
        return int(float(raw))
    except (TypeError, ValueError) as exc:
        raise SchemaError(
            f"datastore response has a non-numeric result.{key}: {raw!r}", url=url
        ) from exc


def parse_page(payload: Any, url: Optional[str] = None) -> DatastorePage:
    """Extract the page counts and records from a decoded response.

    Parameters
    ----------
    payload : Any
        The decoded JSON body of a datastore search response.
    url : str, optional
        The requested URL, attached to raised errors.

    Returns
    -------
    DatastorePage

    Raises
    ------
    SchemaError
        If ``result`` is missing or not an object, if ``total`` or
        ``limit`` are missing or non-numeric, or if ``records`` is
        missing or not a list of objects.
    """
    if not isinstance(payload, dict):
        raise SchemaError(
            f"datastore response must be a JSON object, got {type(payload).__name__}",
            url=url,
        )
    result = payload.get("result")
    if not isinstance(result, dict):
        raise SchemaError("datastore response has no result object", url=url)

    total = _as_count(result, "total", url)
    limit = _as_count(result, "limit", url)

    if "records" not in result:
        raise SchemaError("datastore response has no result.records", url=url)
    records = result["records"]
    if not isinstance(records, list) or not all(isinstance(row, dict) for row in records):
        raise SchemaError("result.records must be a list of objects", url=url)

    return DatastorePage(total=total, limit=limit, records=records)


def build_table(
    records: Sequence[Mapping[str, Any]],
    columns: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """Assemble accumulated records into a DataFrame.

    The column set is the key set of the first record, in order.  Rows
    from later pages that lack one of those columns get ``NaN``; keys
    absent from the first record are dropped.  When there are no
    records at all, ``columns`` (typically the requested fields) is
    used to give the empty table its shape.
    """
    if not records:
        return pd.DataFrame(columns=list(columns or []))
    first_columns = list(records[0].keys())
    return pd.DataFrame(list(records), columns=first_columns)


__all__ = ["DatastorePage", "parse_page", "build_table"]
