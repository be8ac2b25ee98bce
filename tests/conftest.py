"""Pytest configuration and fixtures."""

from urllib.parse import parse_qs, urlsplit

import pytest
import requests

from dkan_datastore.config import Settings


class FakeResponse:
    """Minimal stand-in for :class:`requests.Response`."""

    def __init__(self, payload=None, status_code=200, text=None):
        self._payload = payload
        self.status_code = status_code
        self.text = text

    def json(self):
        if self.text is not None:
            raise requests.exceptions.JSONDecodeError("Expecting value", self.text, 0)
        return self._payload


class FakeSession:
    """Serves a DKAN datastore search over an in-memory list of records.

    Every requested URL is recorded in ``calls``.  The page size applied
    is the smaller of the requested ``limit`` and ``server_limit``.
    Counts are reported as strings, as DKAN portals do.
    """

    def __init__(self, records, server_limit=100):
        self.records = records
        self.server_limit = server_limit
        self.calls = []
        self.closed = False

    def get(self, url, timeout=None):
        self.calls.append(url)
        params = parse_qs(urlsplit(url).query)
        limit = min(int(params["limit"][0]), self.server_limit)
        offset = int(params.get("offset", ["0"])[0])
        fields = params.get("fields[t]")
        rows = self.records[offset:offset + limit]
        if fields:
            wanted = fields[0].split(",")
            rows = [{key: row[key] for key in wanted} for row in rows]
        return FakeResponse(
            {
                "help": "Search a datastore table.",
                "success": True,
                "result": {
                    "resource_id": params["resource_id"],
                    "total": str(len(self.records)),
                    "limit": str(limit),
                    "records": rows,
                },
            }
        )

    def close(self):
        self.closed = True

    def offsets(self):
        return [
            int(parse_qs(urlsplit(url).query).get("offset", ["0"])[0])
            for url in self.calls
        ]


class ScriptedSession:
    """Returns queued responses (or raises queued exceptions) in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append(url)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        pass


def make_records(count):
    return [
        {"_id": str(i + 1), "PWSID": f"CA{i:07d}", "Supplier_Name": f"Supplier {i}"}
        for i in range(count)
    ]


@pytest.fixture
def settings():
    return Settings(base_url="https://data.example.gov")


@pytest.fixture
def records_250():
    return make_records(250)
