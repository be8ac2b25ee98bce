"""Top level package for the dkan_datastore project.

This package contains a client for the datastore search API of DKAN
open-data portals.  The modules under this package are designed to be
thin wrappers around the public API: ``query_builder`` turns search
parameters into a request URL, ``datastore_api`` walks the paginated
answer and ``records_parser`` assembles it into a pandas DataFrame.
``main`` and ``router`` expose the same search over HTTP.

The names re-exported here should be considered stable entry points.
See the documentation strings in individual modules for usage details.
"""

# Defined before the submodule imports, ``config`` reads it.
__version__ = "0.1"

from .datastore_api import DkanDatastoreAPI, read_dkan  # noqa: E402
from .errors import ConfigurationError, DkanError, FetchError, SchemaError  # noqa: E402
from .query_builder import DatastoreQuery, SortDirection, build_query_url  # noqa: E402

__all__ = [
    "__version__",
    "read_dkan",
    "DkanDatastoreAPI",
    "DatastoreQuery",
    "SortDirection",
    "build_query_url",
    "DkanError",
    "ConfigurationError",
    "FetchError",
    "SchemaError",
]
