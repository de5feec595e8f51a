"""Tests for the Supabase REST wrappers with ``requests`` patched out."""

from __future__ import annotations

from typing import Any, Dict

import pytest

import studykit.supabase_backend as backend
from studykit.supabase_backend import SupabaseClient, parse_content_range


class DummyResponse:
    def __init__(self, payload: Any = None, *, status_code: int = 200, headers=None, content: bytes = b""):
        self._payload = payload
        self.status_code = status_code
        self.headers = headers or {}
        self.content = content

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise backend.requests.HTTPError(f"{self.status_code} Error")


class CallLog(list):
    """Recorded requests plus the canned reply per HTTP method."""

    def __init__(self) -> None:
        super().__init__()
        self.replies: Dict[str, DummyResponse] = {}


@pytest.fixture
def calls(monkeypatch) -> CallLog:
    recorded = CallLog()

    def make(method):
        def fake(url, **kwargs):
            recorded.append({"method": method, "url": url, **kwargs})
            return recorded.replies.get(method, DummyResponse([{"id": "row-1"}]))

        return fake

    for method in ("get", "post", "patch", "delete", "head"):
        monkeypatch.setattr(backend.requests, method, make(method))
    return recorded


@pytest.fixture
def client() -> SupabaseClient:
    return SupabaseClient(url="https://demo.supabase.co/", anon_key="anon", access_token="jwt")


def test_headers_prefer_user_token():
    """Requests authenticate with the user token when there is one."""

    anonymous = SupabaseClient(url="https://demo.supabase.co", anon_key="anon")
    signed_in = SupabaseClient(url="https://demo.supabase.co", anon_key="anon", access_token="jwt")

    assert anonymous.headers()["Authorization"] == "Bearer anon"
    assert signed_in.headers({"Prefer": "x"})["Authorization"] == "Bearer jwt"
    assert signed_in.headers({"Prefer": "x"})["Prefer"] == "x"


def test_insert_returns_first_row(calls, client):
    """Inserts ask for the representation and return the first row."""

    row = client.table("studies").insert({"title": "Coffee"})

    assert row == {"id": "row-1"}
    assert calls[0]["url"] == "https://demo.supabase.co/rest/v1/studies"
    assert calls[0]["headers"]["Prefer"] == "return=representation"
    assert calls[0]["timeout"] == backend.REQUEST_TIMEOUT


def test_insert_without_rows_is_an_error(calls, client):
    """An insert returning no rows is an error."""

    calls.replies["post"] = DummyResponse([])

    with pytest.raises(ValueError):
        client.table("studies").insert({"title": "Coffee"})


def test_select_uses_eq_filters_and_order(calls, client):
    """Selects send equality filters, ordering and a limit."""

    client.table("studies").select({"researcher_id": "r1"}, order="created_at", descending=True, limit=5)

    params = calls[0]["params"]
    assert params["researcher_id"] == "eq.r1"
    assert params["order"] == "created_at.desc"
    assert params["limit"] == 5


def test_update_and_delete_filter_by_equality(calls, client):
    """Updates and deletes filter with ``eq.`` parameters."""

    client.table("studies").update({"id": "s1", "researcher_id": "r1"}, {"title": "New"})
    client.table("studies").delete({"id": "s1"})

    assert calls[0]["method"] == "patch"
    assert calls[0]["params"] == {"id": "eq.s1", "researcher_id": "eq.r1"}
    assert calls[1]["method"] == "delete"
    assert calls[1]["params"] == {"id": "eq.s1"}


def test_http_errors_propagate(calls, client):
    """HTTP errors are raised to the caller."""

    calls.replies["get"] = DummyResponse({"message": "nope"}, status_code=401)

    with pytest.raises(backend.requests.HTTPError):
        client.table("studies").select()


def test_count_reads_content_range(calls, client):
    """Counts come from the ``Content-Range`` header."""

    calls.replies["head"] = DummyResponse(headers={"Content-Range": "0-2/3"})

    assert client.table("form_responses").count({"study_id": "s1"}) == 3
    assert calls[0]["headers"]["Prefer"] == "count=exact"


@pytest.mark.parametrize(("value", "expected"), [("0-9/42", 42), ("*/0", 0), ("0-1/*", 0), (None, 0)])
def test_parse_content_range(value, expected):
    """Content ranges without a numeric total count as zero."""

    assert parse_content_range(value) == expected


def test_storage_upload_download_remove(calls, client):
    """Storage calls use the object, authenticated and prefix endpoints."""

    calls.replies["get"] = DummyResponse(content=b"a,b\n")
    storage = client.storage("study-data")

    storage.upload("s1/1-data file.csv", b"a,b\n")
    assert storage.download("s1/1-data file.csv") == b"a,b\n"
    storage.remove("s1/1-data file.csv")

    upload, download, remove = calls
    assert upload["url"] == "https://demo.supabase.co/storage/v1/object/study-data/s1/1-data%20file.csv"
    assert upload["headers"]["x-upsert"] == "false"
    assert download["url"].startswith("https://demo.supabase.co/storage/v1/object/authenticated/study-data/")
    assert remove["json"] == {"prefixes": ["s1/1-data file.csv"]}


def test_function_invoke_returns_status_and_body(calls, client):
    """Function calls return the status with the decoded body."""

    calls.replies["post"] = DummyResponse({"error": "Rate limit"}, status_code=429)

    status, payload = client.functions().invoke("generate-form", {"title": "Coffee"})

    assert (status, payload) == (429, {"error": "Rate limit"})
    assert calls[0]["url"] == "https://demo.supabase.co/functions/v1/generate-form"


def test_function_invoke_tolerates_non_json(calls, client):
    """Non-JSON function replies decode to None."""

    calls.replies["post"] = DummyResponse(None, status_code=502)

    assert client.functions().invoke("generate-form", {}) == (502, None)
