"""Interface to the datastore search API of DKAN portals.

The functions and classes defined in this module provide a thin
abstraction over the ``/api/action/datastore/search.json`` endpoint
exposed by DKAN-based open-data portals such as the California Open
Data Portal (https://data.ca.gov).  They allow querying a resource with
filters, column selection, full-text search and sorting, and they walk
the offset/limit pages of the answer so that the caller receives every
matching record in a single :class:`pandas.DataFrame`.

Requests are issued one after the other on a single
:class:`requests.Session`.  Failures are not retried: the first error
aborts the search and is raised to the caller as a
:class:`~dkan_datastore.errors.FetchError` or
:class:`~dkan_datastore.errors.SchemaError`.

Examples
--------
>>> from dkan_datastore.datastore_api import read_dkan
>>> df = read_dkan(
...     resource_id="a731c980-9477-4ec7-bcfc-6d0cce00306c",
...     query="American Canyon, City of",
...     sort_field="Reporting_Month",
...     sort_direction="asc",
... )
>>> df = read_dkan(
...     base_url="http://data.openoakland.org",
...     resource_id="aca3da67-a4e2-46a0-8727-1657fcdc0e1d",
...     filter_fields="street",
...     filter_values=[["HENRY", "FILBERT", "MYRTLE"]],
... )
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd
import requests

from .config import Settings, get_settings
from .errors import FetchError, SchemaError
from .pagination import plan_page_offsets, target_row_count
from .query_builder import (
    DatastoreQuery,
    SortDirection,
    StrOrSeq,
    build_query_url,
    with_offset,
)
from .records_parser import DatastorePage, build_table, parse_page

logger = logging.getLogger(__name__)


def _create_session(user_agent: str) -> requests.Session:
    """Return a `requests.Session` identifying itself with ``user_agent``."""
    session = requests.Session()
    session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})
    return session


class DkanDatastoreAPI:
    """Client for the datastore search API of a DKAN portal.

    This class encapsulates a `requests.Session` and exposes a method to
    fetch a single page and a method to run a complete, paginated
    search.  A session passed in by the caller is used as-is and left
    open; a session created here is closed by :meth:`close` or when the
    client is used as a context manager.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or get_settings()
        self.base_url = (base_url or settings.base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.timeout
        self._owns_session = session is None
        self.session = session or _create_session(settings.user_agent)

    def __enter__(self) -> "DkanDatastoreAPI":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def _request(self, url: str) -> Any:
        """Perform a GET request and return the decoded JSON body.

        Raises
        ------
        FetchError
            If the request fails, the status is 400 or above, or the
            body is not JSON.
        """
        logger.debug("Requesting URL %s", url)
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("Request exception for %s: %s", url, exc)
            raise FetchError(f"request to {url} failed: {exc}", url=url) from exc

        if response.status_code >= 400:
            logger.warning("Received HTTP %s for %s", response.status_code, url)
            raise FetchError(
                f"datastore returned HTTP {response.status_code} for {url}",
                url=url,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            # requests' JSONDecodeError subclasses ValueError.
            logger.error("Non-JSON response received from %s", url)
            raise FetchError(
                f"datastore returned a non-JSON body for {url}",
                url=url,
                status_code=response.status_code,
            ) from exc

    def fetch_page(self, url: str) -> DatastorePage:
        """Fetch and decode a single page of search results.

        Parameters
        ----------
        url : str
            Fully built search URL, including ``offset`` when needed.

        Returns
        -------
        DatastorePage
            The page's ``total``, ``limit`` and ``records``.

        Raises
        ------
        FetchError
            See :meth:`_request`; also raised when the portal flags the
            answer with ``"success": false``.
        SchemaError
            If the decoded body lacks ``result.total``,
            ``result.limit`` or ``result.records``.
        """
        payload = self._request(url)
        if isinstance(payload, dict) and payload.get("success") is False:
            error = payload.get("error")
            logger.error("Datastore reported failure for %s: %s", url, error)
            raise FetchError(f"datastore reported failure for {url}: {error}", url=url)
        try:
            return parse_page(payload, url=url)
        except SchemaError as exc:
            logger.error("Unexpected datastore response from %s: %s", url, exc)
            raise

    def search(self, query: DatastoreQuery, encoding: str = "spaces") -> pd.DataFrame:
        """Run a datastore search and return every requested record.

        Parameters
        ----------
        query : DatastoreQuery
            The search to run.  Its ``base_url``, when set, overrides the
            client's.
        encoding : {"spaces", "full"}, default "spaces"
            Query string serialization, see
            :func:`~dkan_datastore.query_builder.encode_params`.

        Returns
        -------
        pandas.DataFrame
            One row per record in server order, with the columns of the
            first page.  At most ``query.max_records`` rows when a
            maximum is given.

        Raises
        ------
        ConfigurationError
            If the query is inconsistent.  Raised before any request.
        FetchError, SchemaError
            If any page fails.  No partial table is returned.
        """
        url = build_query_url(query, encoding=encoding, base_url=self.base_url)
        requested_fields = query.fields
        if isinstance(requested_fields, str):
            requested_fields = [requested_fields]

        if query.max_records == 0:
            logger.info("max_records=0 for resource %s; nothing to fetch", query.resource_id)
            return build_table([], columns=requested_fields)

        first = self.fetch_page(url)
        records: List[Dict[str, Any]] = list(first.records)
        offsets = plan_page_offsets(first.total, first.limit, query.max_records)
        logger.info(
            "Resource %s: %d matching records, %d per page, %d more page(s) to fetch",
            query.resource_id,
            first.total,
            first.limit,
            len(offsets),
        )

        for offset in offsets:
            page = self.fetch_page(with_offset(url, offset))
            records.extend(page.records)

        wanted = target_row_count(first.total, query.max_records)
        if query.max_records is not None and len(records) > wanted:
            records = records[:wanted]

        table = build_table(records, columns=requested_fields)
        logger.info("Retrieved %d records from resource %s", len(table), query.resource_id)
        return table


def read_dkan(
    resource_id: str,
    base_url: Optional[str] = None,
    filter_fields: Optional[StrOrSeq] = None,
    filter_values: Optional[Sequence[StrOrSeq]] = None,
    fields: Optional[StrOrSeq] = None,
    query: Optional[StrOrSeq] = None,
    sort_field: Optional[str] = None,
    sort_direction: Optional[Union[SortDirection, str]] = None,
    max_records: Optional[int] = None,
    encoding: str = "spaces",
    session: Optional[requests.Session] = None,
) -> pd.DataFrame:
    """Query a DKAN datastore resource and return the records as a DataFrame.

    This is the module-level convenience wrapper around
    :meth:`DkanDatastoreAPI.search`.  It instantiates a temporary client,
    builds a :class:`DatastoreQuery` from its arguments and delegates.

    Parameters
    ----------
    resource_id : str
        Alphanumeric identifier of the resource, e.g.
        ``a731c980-9477-4ec7-bcfc-6d0cce00306c``.  It can be found on the
        *Data API* page of the resource.
    base_url : str, optional
        Base URL of the portal.  Defaults to ``DKAN_BASE_URL`` or
        ``https://data.ca.gov``.
    filter_fields : str or sequence of str, optional
        Fields used as filters.
    filter_values : sequence, optional
        One element per filter field, each holding one or more accepted
        values, e.g. ``[["CA3010037"], ["Stage 1"]]``.  A value that
        contains a comma is split by the portal; use ``query`` instead.
    fields : str or sequence of str, optional
        Columns to return.  All columns are returned when omitted.
    query : str or sequence of str, optional
        Full-text search across all fields.
    sort_field : str, optional
        Field to sort the records on.
    sort_direction : {"asc", "desc"}, optional
        Direction for ``sort_field``.
    max_records : int, optional
        Maximum number of records to return.  All records matching the
        other arguments are returned when omitted.
    encoding : {"spaces", "full"}, default "spaces"
        Query string serialization.
    session : requests.Session, optional
        Session to issue requests with.

    Returns
    -------
    pandas.DataFrame
    """
    with DkanDatastoreAPI(base_url=base_url, session=session) as client:
        datastore_query = DatastoreQuery(
            resource_id=resource_id,
            base_url=client.base_url,
            filter_fields=filter_fields,
            filter_values=filter_values,
            fields=fields,
            query=query,
            sort_field=sort_field,
            sort_direction=sort_direction,
            max_records=max_records,
        )
        return client.search(datastore_query, encoding=encoding)


__all__ = ["DkanDatastoreAPI", "read_dkan"]
