import pandas as pd
import pytest
import requests

import dkan_datastore.datastore_api as api_mod
from conftest import FakeResponse, FakeSession, ScriptedSession, make_records
from dkan_datastore.datastore_api import DkanDatastoreAPI, read_dkan
from dkan_datastore.errors import ConfigurationError, FetchError, SchemaError
from dkan_datastore.query_builder import DatastoreQuery

RESOURCE_ID = "a731c980-9477-4ec7-bcfc-6d0cce00306c"


def _client(session, settings):
    return DkanDatastoreAPI(session=session, settings=settings)


def _query(settings, **kwargs):
    return DatastoreQuery(resource_id=RESOURCE_ID, base_url=settings.base_url, **kwargs)


def test_all_records_fetches_every_page(records_250, settings):
    session = FakeSession(records_250)

    table = _client(session, settings).search(_query(settings))

    assert session.offsets() == [0, 100, 200]
    assert "offset" not in session.calls[0]
    assert len(table) == 250
    assert table["_id"].tolist() == [str(i) for i in range(1, 251)]


def test_evenly_divisible_total_has_no_extra_request(settings):
    session = FakeSession(make_records(200))

    table = _client(session, settings).search(_query(settings))

    assert session.offsets() == [0, 100]
    assert len(table) == 200


def test_max_records_above_page_size_truncates_last_page(records_250, settings):
    session = FakeSession(records_250)

    table = _client(session, settings).search(_query(settings, max_records=150))

    assert session.offsets() == [0, 100]
    assert len(table) == 150
    assert table["_id"].iloc[-1] == "150"


def test_max_records_within_page_size_uses_one_request(records_250, settings):
    session = FakeSession(records_250)

    table = _client(session, settings).search(_query(settings, max_records=50))

    assert len(session.calls) == 1
    assert "limit=50" in session.calls[0]
    assert len(table) == 50


def test_max_records_larger_than_total(settings):
    session = FakeSession(make_records(30))

    table = _client(session, settings).search(_query(settings, max_records=50))

    assert len(session.calls) == 1
    assert len(table) == 30


def test_max_records_above_total_with_several_pages(settings):
    session = FakeSession(make_records(120))

    table = _client(session, settings).search(_query(settings, max_records=500))

    assert session.offsets() == [0, 100]
    assert len(table) == 120


def test_server_limit_smaller_than_requested(settings):
    session = FakeSession(make_records(120), server_limit=50)

    table = _client(session, settings).search(_query(settings))

    assert session.offsets() == [0, 50, 100]
    assert len(table) == 120


def test_max_records_zero_issues_no_request(settings):
    session = FakeSession(make_records(10))

    table = _client(session, settings).search(_query(settings, max_records=0, fields=["PWSID"]))

    assert session.calls == []
    assert table.empty
    assert list(table.columns) == ["PWSID"]


def test_field_subset_matches_full_table(records_250, settings):
    client = _client(FakeSession(records_250), settings)

    full = client.search(_query(settings))
    subset = client.search(_query(settings, fields=["PWSID", "Supplier_Name"]))

    assert list(subset.columns) == ["PWSID", "Supplier_Name"]
    pd.testing.assert_frame_equal(subset, full[["PWSID", "Supplier_Name"]])


def test_empty_result(settings):
    table = _client(FakeSession([]), settings).search(_query(settings, fields="PWSID"))

    assert table.empty
    assert list(table.columns) == ["PWSID"]


def test_mismatched_filters_never_hit_the_network(settings):
    session = FakeSession(make_records(10))

    with pytest.raises(ConfigurationError):
        _client(session, settings).search(_query(settings, filter_fields=["PWSID"]))

    assert session.calls == []


def test_http_error_status_raises_fetch_error(settings):
    session = ScriptedSession(FakeResponse({"error": "gone"}, status_code=404))

    with pytest.raises(FetchError) as excinfo:
        _client(session, settings).search(_query(settings))

    assert excinfo.value.status_code == 404
    assert excinfo.value.url == session.calls[0]


def test_network_failure_raises_fetch_error(settings):
    session = ScriptedSession(requests.ConnectionError("connection refused"))

    with pytest.raises(FetchError) as excinfo:
        _client(session, settings).search(_query(settings))

    assert isinstance(excinfo.value.__cause__, requests.ConnectionError)


def test_non_json_body_raises_fetch_error(settings):
    session = ScriptedSession(FakeResponse(text="<html>maintenance</html>"))

    with pytest.raises(FetchError, match="non-JSON"):
        _client(session, settings).search(_query(settings))


def test_unsuccessful_answer_raises_fetch_error(settings):
    session = ScriptedSession(
        FakeResponse({"success": False, "error": {"message": "Not found: Resource"}})
    )

    with pytest.raises(FetchError, match="Not found"):
        _client(session, settings).search(_query(settings))


def test_missing_result_raises_schema_error(settings):
    session = ScriptedSession(FakeResponse({"help": "x", "success": True}))

    with pytest.raises(SchemaError):
        _client(session, settings).search(_query(settings))


def test_failure_on_later_page_aborts_search(settings):
    first = FakeResponse(
        {"success": True, "result": {"total": "250", "limit": "100", "records": make_records(100)}}
    )
    session = ScriptedSession(first, FakeResponse({}, status_code=503))

    with pytest.raises(FetchError):
        _client(session, settings).search(_query(settings))

    assert len(session.calls) == 2


def test_timeout_is_forwarded(settings):
    seen = []

    class _Session(FakeSession):
        def get(self, url, timeout=None):
            seen.append(timeout)
            return super().get(url, timeout=timeout)

    DkanDatastoreAPI(session=_Session(make_records(5)), timeout=7.5, settings=settings).search(
        _query(settings)
    )

    assert seen == [7.5]


def test_injected_session_is_not_closed(settings):
    session = FakeSession([])

    with DkanDatastoreAPI(session=session, settings=settings):
        pass

    assert session.closed is False


def test_owned_session_is_closed(monkeypatch, settings):
    created = FakeSession([])
    monkeypatch.setattr(api_mod, "_create_session", lambda user_agent: created)

    with DkanDatastoreAPI(settings=settings) as client:
        assert client.session is created

    assert created.closed is True


def test_read_dkan_builds_query_from_arguments(records_250):
    session = FakeSession(records_250)

    table = read_dkan(
        resource_id=RESOURCE_ID,
        base_url="http://data.openoakland.org",
        filter_fields="PWSID",
        filter_values=[["CA0000001", "CA0000002"]],
        query="Supplier 1",
        sort_field="Reporting_Month",
        sort_direction="asc",
        max_records=150,
        session=session,
    )

    first_url = session.calls[0]
    assert first_url.startswith("http://data.openoakland.org/api/action/datastore/search.json?")
    assert "&filters[PWSID]=CA0000001,CA0000002" in first_url
    assert '&query="Supplier%201"' in first_url
    assert first_url.endswith("&sort[Reporting_Month]=asc")
    assert len(table) == 150


def test_read_dkan_uses_configured_base_url(monkeypatch):
    monkeypatch.setenv("DKAN_BASE_URL", "https://portal.example.org")
    session = FakeSession(make_records(3))

    read_dkan(resource_id="r1", session=session)

    assert session.calls[0].startswith("https://portal.example.org/api/action/datastore/search.json?")


def test_search_uses_client_base_url(monkeypatch):
    monkeypatch.setenv("DKAN_BASE_URL", "https://portal.example.org")
    session = FakeSession(make_records(3))

    DkanDatastoreAPI(base_url="http://data.openoakland.org", session=session).search(
        DatastoreQuery(resource_id="r1")
    )

    assert session.calls[0].startswith("http://data.openoakland.org/api/action/datastore/search.json?")


def test_search_uses_configured_base_url(monkeypatch):
    monkeypatch.setenv("DKAN_BASE_URL", "https://portal.example.org")
    session = FakeSession(make_records(3))

    DkanDatastoreAPI(session=session).search(DatastoreQuery(resource_id="r1"))

    assert session.calls[0].startswith("https://portal.example.org/api/action/datastore/search.json?")


def test_query_base_url_overrides_client(settings):
    session = FakeSession(make_records(3))

    _client(session, settings).search(DatastoreQuery(resource_id="r1", base_url="http://other.example"))

    assert session.calls[0].startswith("http://other.example/api/")


def test_read_dkan_accepts_single_string_filter_value():
    session = FakeSession(make_records(3))

    read_dkan(
        resource_id="r1",
        base_url="http://data.openoakland.org",
        filter_fields="street",
        filter_values="HENRY",
        session=session,
    )

    assert session.calls[0].endswith("&filters[street]=HENRY")
