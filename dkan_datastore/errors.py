"""Exception hierarchy for the DKAN datastore client.

Every failure raised by this package derives from :class:`DkanError`
so that callers can catch the whole family at once.  The three
concrete kinds map onto the three stages of a search:

* :class:`ConfigurationError` is raised while the query is being
  assembled, before any network traffic takes place.
* :class:`FetchError` is raised when a page could not be retrieved or
  decoded (network failure, HTTP error status, non-JSON body, or a
  portal answer flagged ``success: false``).
* :class:`SchemaError` is raised when a page was decoded but does not
  have the ``result.total`` / ``result.limit`` / ``result.records``
  structure of a datastore search response.

None of these errors are retried.  Pagination stops at the first one
and no partial table is returned.
"""

from __future__ import annotations

from typing import Optional


class DkanError(Exception):
    """Base class for all errors raised by :mod:`dkan_datastore`."""


class ConfigurationError(DkanError, ValueError):
    """The caller supplied inconsistent or invalid query arguments."""


class FetchError(DkanError):
    """A datastore page could not be fetched or decoded.

    Parameters
    ----------
    message : str
        Human readable description of the failure.
    url : str, optional
        The URL that was being requested.
    status_code : int, optional
        HTTP status of the response, when one was received.
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class SchemaError(DkanError):
    """A decoded page lacks the expected datastore search structure."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


__all__ = ["DkanError", "ConfigurationError", "FetchError", "SchemaError"]
