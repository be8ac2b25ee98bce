"""Construction of DKAN datastore search URLs.

A datastore search is described by a :class:`DatastoreQuery`.  This
module validates the query and turns it into an ordered sequence of
``(key, value)`` pairs which is serialized once into the final URL::

    <base_url>/api/action/datastore/search.json?resource_id=...&limit=...
        &filters[<field>]=<v1>,<v2>&fields[t]=<f1>,<f2>
        &query="<term1>","<term2>"&sort[<field>]=<direction>

Two serialization modes are available.  ``"spaces"`` (the default)
only replaces spaces with ``%20`` and leaves every other character
untouched, which is what DKAN portals have historically been queried
with.  ``"full"`` percent-encodes keys and values completely; it is
the safer choice when filter values contain ``&``, ``#`` or ``=`` but
portal-side parsing of such values has not been verified everywhere,
so it is opt-in.

Note that filter values are joined with commas without escaping.  A
value that itself contains a comma is split by the portal; use the
full-text ``query`` for such values instead.

Example
-------
>>> q = DatastoreQuery(
...     resource_id="a731c980-9477-4ec7-bcfc-6d0cce00306c",
...     filter_fields=["PWSID", "Stage_Invoked"],
...     filter_values=[["CA3010037"], ["Stage 1"]],
... )
>>> build_query_url(q)  # doctest: +ELLIPSIS
'https://data.ca.gov/api/action/datastore/search.json?resource_id=...&limit=100&filters[PWSID]=CA3010037&filters[Stage_Invoked]=Stage%201'
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union
from urllib.parse import quote

from .config import get_settings
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# Maximum number of records a DKAN portal returns per request.
PAGE_SIZE = 100

SEARCH_PATH = "/api/action/datastore/search.json"

ENCODING_MODES = ("spaces", "full")

StrOrSeq = Union[str, Sequence[str]]


class SortDirection(str, enum.Enum):
    """Sort directions understood by the datastore search endpoint."""

    ASC = "asc"
    DESC = "desc"


def _as_list(value: Optional[StrOrSeq]) -> Optional[List[str]]:
    """Normalise a scalar or sequence argument into a list of strings.

    ``None`` and empty sequences both mean "not supplied".
    """
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    items = [str(v) for v in value]
    return items or None


def _as_groups(value: Optional[Sequence[StrOrSeq]]) -> Optional[List[StrOrSeq]]:
    """Normalise ``filter_values`` into one group per filter field.

    A bare string is a single value for a single field.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return [[value]]
    groups = list(value)
    return groups or None


@dataclass(frozen=True)
class DatastoreQuery:
    """Parameters of a single datastore search.

    Attributes
    ----------
    resource_id : str
        Identifier of the resource (dataset table) on the portal, as
        shown on its *Data API* page.
    base_url : str, optional
        Base URL of the portal, without the API path.  When omitted the
        client's base URL (or ``DKAN_BASE_URL``) is used.
    filter_fields : sequence of str, optional
        Fields to filter on, in order.
    filter_values : str or sequence of sequences, optional
        One group of accepted values per entry of ``filter_fields``.
        A bare string is one value for a single filter field.
        A record matches a field when its value equals any value of the
        group.
    fields : sequence of str, optional
        Columns to return.  All columns are returned when omitted.
    query : sequence of str, optional
        Full-text search terms matched against every field.
    sort_field : str, optional
        Field to order the records by.
    sort_direction : SortDirection or str, optional
        ``"asc"`` or ``"desc"``; required when ``sort_field`` is given.
    max_records : int, optional
        Maximum number of records to retrieve.  All matching records
        are retrieved when omitted.
    """

    resource_id: str
    base_url: Optional[str] = None
    filter_fields: Optional[StrOrSeq] = None
    filter_values: Optional[Sequence[StrOrSeq]] = None
    fields: Optional[StrOrSeq] = None
    query: Optional[StrOrSeq] = None
    sort_field: Optional[str] = None
    sort_direction: Optional[Union[SortDirection, str]] = None
    max_records: Optional[int] = None

    @property
    def page_limit(self) -> int:
        """The ``limit`` sent with every request."""
        if self.max_records is None:
            return PAGE_SIZE
        return min(self.max_records, PAGE_SIZE)

    def endpoint(self, base_url: Optional[str] = None) -> str:
        """Search endpoint URL.

        ``self.base_url`` wins over ``base_url``; with neither, the
        portal configured through ``DKAN_BASE_URL`` is used.  Spaces are
        rendered as ``%20`` whatever the query string encoding.
        """
        base = self.base_url or base_url or get_settings().base_url
        return base.rstrip("/").replace(" ", "%20") + SEARCH_PATH

    def validate(self) -> None:
        """Check the query for inconsistent arguments.

        Raises
        ------
        ConfigurationError
            If the resource id is empty, only one of ``filter_fields``
            and ``filter_values`` is supplied or their lengths differ,
            a sort field has no direction, or ``max_records`` is
            negative.
        """
        if not self.resource_id or not str(self.resource_id).strip():
            raise ConfigurationError("resource_id is required")

        filter_fields = _as_list(self.filter_fields)
        filter_values = _as_groups(self.filter_values)
        if (filter_fields is None) != (filter_values is None):
            raise ConfigurationError(
                "mismatched filter arguments: filter_fields and filter_values "
                "must be supplied together"
            )
        if filter_fields is not None and len(filter_fields) != len(filter_values):
            raise ConfigurationError(
                "mismatched filter arguments: got %d filter fields but %d groups "
                "of filter values" % (len(filter_fields), len(filter_values))
            )

        if self.sort_field and not self.sort_direction:
            raise ConfigurationError(
                f"sort_direction is required when sorting on {self.sort_field!r}"
            )

        if self.max_records is not None:
            if isinstance(self.max_records, bool) or not isinstance(self.max_records, int):
                raise ConfigurationError(
                    f"max_records must be an integer, got {self.max_records!r}"
                )
            if self.max_records < 0:
                raise ConfigurationError(
                    f"max_records must not be negative, got {self.max_records}"
                )


def build_query_params(query: DatastoreQuery) -> List[Tuple[str, str]]:
    """Return the ordered ``(key, value)`` pairs of a search request.

    The ``offset`` parameter is not included; it is appended by the
    paginator for every page after the first.
    """
    query.validate()

    params: List[Tuple[str, str]] = [
        ("resource_id", str(query.resource_id)),
        ("limit", str(query.page_limit)),
    ]

    filter_fields = _as_list(query.filter_fields)
    if filter_fields:
        for field_name, values in zip(filter_fields, _as_groups(query.filter_values)):
            params.append((f"filters[{field_name}]", ",".join(_as_list(values) or [])))

    fields = _as_list(query.fields)
    if fields:
        params.append(("fields[t]", ",".join(fields)))

    terms = _as_list(query.query)
    if terms:
        params.append(("query", ",".join(f'"{term}"' for term in terms)))

    if query.sort_field:
        direction = query.sort_direction
        if isinstance(direction, SortDirection):
            direction = direction.value
        params.append((f"sort[{query.sort_field}]", str(direction)))

    return params


def encode_params(params: Sequence[Tuple[str, str]], encoding: str = "spaces") -> str:
    """Serialize query pairs into a query string.

    Parameters
    ----------
    params : sequence of (str, str)
        Pairs as produced by :func:`build_query_params`.
    encoding : {"spaces", "full"}
        ``"spaces"`` only renders spaces as ``%20``.  ``"full"``
        percent-encodes every reserved character, keeping the square
        brackets of ``filters[...]``/``sort[...]`` keys literal.
    """
    if encoding == "spaces":
        return "&".join(f"{key}={value}" for key, value in params).replace(" ", "%20")
    if encoding == "full":
        return "&".join(
            f"{quote(key, safe='[]')}={quote(value, safe='')}" for key, value in params
        )
    raise ConfigurationError(
        f"unknown encoding {encoding!r}; expected one of {', '.join(ENCODING_MODES)}"
    )


def build_query_url(
    query: DatastoreQuery,
    encoding: str = "spaces",
    base_url: Optional[str] = None,
) -> str:
    """Return the URL of the first page of ``query``.

    ``base_url`` is used when the query does not name a portal itself.

    Raises
    ------
    ConfigurationError
        If the query is inconsistent or ``encoding`` is unknown.  No
        request is issued in either case.
    """
    query_string = encode_params(build_query_params(query), encoding=encoding)
    url = f"{query.endpoint(base_url)}?{query_string}"
    logger.debug("Built datastore query URL %s", url)
    return url


def with_offset(url: str, offset: int) -> str:
    """Append the ``offset`` parameter to a query URL."""
    return f"{url}&offset={offset}"


__all__ = [
    "PAGE_SIZE",
    "SortDirection",
    "DatastoreQuery",
    "build_query_params",
    "encode_params",
    "build_query_url",
    "with_offset",
]
