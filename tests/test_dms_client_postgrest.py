"""
Tests for the PostgREST document store client.
"""

import re
from datetime import datetime, timezone

import httpx
import pytest

from shared.clients.dms.DMSClientManager import DMSClientManager
from shared.clients.dms.postgrest.DMSClientPostgrest import DMSClientPostgrest, in_filter, quote_value
from shared.exceptions import StoreError


@pytest.fixture
def postgrest_env(monkeypatch, helper_config):
    monkeypatch.setenv("DMS_POSTGREST_BASE_URL", "https://db.test")
    monkeypatch.setenv("DMS_POSTGREST_API_KEY", "service-key")
    monkeypatch.setenv("DMS_PAGE_SIZE", "2")
    return helper_config


async def _booted_client(helper_config, handler) -> DMSClientPostgrest:
    client = DMSClientPostgrest(helper_config=helper_config)
    await client.boot(transport=httpx.MockTransport(handler))
    return client


def _doc(doc_id: str, persona_id: str | None = "persona-1", minute: int = 0, **extra) -> dict:
    row = {
        "id": doc_id,
        "persona_id": persona_id,
        "title": f"Title {doc_id}",
        "content": f"Content {doc_id}",
        "type": "doc",
        "updated_at": f"2024-05-01T12:{minute:02d}:00+00:00",
    }
    row.update(extra)
    return row


def _serve_sorted_page(table: list[dict], params: dict) -> list[dict]:
    """Answers a private document listing the way PostgREST would, cursor filter included."""
    rows = sorted(table, key=lambda row: (row["updated_at"], row["id"]))
    cursor = re.search(r'updated_at\.gt\."([^"]*)".*id\.gt\."([^"]*)"', params.get("or", ""))
    if cursor:
        at, doc_id = cursor.groups()
        rows = [row for row in rows if (row["updated_at"], row["id"]) > (at, doc_id)]
    return rows[:int(params["limit"])]


class TestDMSClientPostgrest:
    """Tests for DMSClientPostgrest requests and row parsing."""

    def test_manager_selects_postgrest_by_default(self, postgrest_env):
        assert isinstance(DMSClientManager(helper_config=postgrest_env).get_client(), DMSClientPostgrest)

    @pytest.mark.asyncio
    async def test_fetch_persona_ids(self, postgrest_env):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["apikey"] = request.headers.get("apikey")
            return httpx.Response(200, json=[{"id": "persona-1"}, {"id": ""}, {"id": "persona-2"}])

        client = await _booted_client(postgrest_env, handler)
        try:
            persona_ids = await client.do_fetch_persona_ids("user-1")
        finally:
            await client.close()

        assert persona_ids == ["persona-1", "persona-2"]
        assert seen["path"] == "/rest/v1/personas"
        assert seen["params"] == {"select": "id", "user_id": "eq.user-1"}
        assert seen["apikey"] == "service-key"

    @pytest.mark.asyncio
    async def test_fetch_documents_pages_by_cursor_and_dedupes(self, postgrest_env):
        requests = []
        persona_pages = [[_doc("d1"), _doc("d2", minute=1)], [_doc("d2", minute=5)]]
        private_pages = [[_doc("private-user-1-n1", persona_id=None, minute=3)]]

        def handler(request: httpx.Request) -> httpx.Response:
            params = dict(request.url.params)
            requests.append(params)
            pages = private_pages if params.get("persona_id") == "is.null" else persona_pages
            return httpx.Response(200, json=pages.pop(0))

        client = await _booted_client(postgrest_env, handler)
        try:
            documents = await client.do_fetch_documents("user-1", ["persona-1"])
        finally:
            await client.close()

        assert [document.id for document in documents] == ["d1", "d2", "private-user-1-n1"]
        assert documents[1].updated_at.minute == 5
        assert documents[0].owner_scope == "persona-1"
        assert documents[2].owner_scope == "private:user-1"
        assert documents[2].persona_id is None
        assert len(requests) == 3
        assert all("offset" not in params for params in requests)
        assert "or" not in requests[0]
        assert requests[1]["or"] == (
            '(updated_at.gt."2024-05-01T12:01:00+00:00",'
            'and(updated_at.eq."2024-05-01T12:01:00+00:00",id.gt."d2"))'
        )
        assert requests[0]["persona_id"] == 'in.("persona-1")'
        assert requests[0]["order"] == "updated_at.asc,id.asc"
        assert requests[0]["limit"] == "2"
        assert requests[2]["id"] == "like.private-user-1-*"
        assert all("updated_at" not in params for params in requests)

    @pytest.mark.asyncio
    async def test_edit_during_listing_skips_no_document(self, postgrest_env):
        table = [_doc(f"private-user-1-{name}", persona_id=None, minute=minute) for minute, name in enumerate("abcde")]
        served = []

        def handler(request: httpx.Request) -> httpx.Response:
            page = _serve_sorted_page(table, dict(request.url.params))
            served.append([row["id"] for row in page])
            if len(served) == 1:
                # the first document is edited after the first page went out
                table[0] = _doc("private-user-1-a", persona_id=None, updated_at="2024-05-01T13:00:00+00:00")
            return httpx.Response(200, json=page)

        client = await _booted_client(postgrest_env, handler)
        try:
            documents = await client.do_fetch_documents("user-1", [])
        finally:
            await client.close()

        ids = [document.id for document in documents]
        assert sorted(ids) == [f"private-user-1-{name}" for name in "abcde"]
        assert served[1] == ["private-user-1-c", "private-user-1-d"]
        edited = documents[ids.index("private-user-1-a")]
        assert edited.updated_at == datetime(2024, 5, 1, 13, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_full_page_without_cursor_row_raises(self, postgrest_env):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"id": "x1"}, {"id": "x2"}])

        client = await _booted_client(postgrest_env, handler)
        try:
            with pytest.raises(StoreError):
                await client.do_fetch_documents("user-1", [])
        finally:
            await client.close()

    def test_filter_values_escape_quotes_and_backslashes(self):
        assert quote_value('a"b') == '"a\\"b"'
        assert quote_value("a\\b") == '"a\\\\b"'
        assert in_filter(["d1", 'x\\"y']) == 'in.("d1","x\\\\\\"y")'

    @pytest.mark.asyncio
    async def test_fetch_documents_with_lower_bound_and_no_personas(self, postgrest_env):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(dict(request.url.params))
            return httpx.Response(200, json=[])

        client = await _booted_client(postgrest_env, handler)
        try:
            await client.do_fetch_documents("user-1", [], updated_after=datetime(2024, 5, 1, 12, tzinfo=timezone.utc))
        finally:
            await client.close()

        assert len(requests) == 1
        assert requests[0]["persona_id"] == "is.null"
        assert requests[0]["updated_at"] == "gte.2024-05-01T12:00:00+00:00"

    @pytest.mark.asyncio
    async def test_rows_are_validated(self, postgrest_env):
        rows = [
            _doc("folder-a", type="folder=1"),
            _doc("folder-b", is_folder=True),
            {"id": "no-timestamp", "persona_id": "persona-1", "content": "x"},
            {"persona_id": "persona-1", "updated_at": "2024-05-01T12:00:00+00:00"},
            _doc("bad-timestamp", updated_at="yesterday"),
            _doc("ok"),
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=rows)

        client = await _booted_client(postgrest_env, handler)
        try:
            documents = await client.do_fetch_documents_by_ids(["folder-a", "folder-b", "no-timestamp", "bad-timestamp", "ok"])
        finally:
            await client.close()

        assert [document.id for document in documents] == ["folder-a", "folder-b", "ok"]
        assert [document.is_folder for document in documents] == [True, True, False]

    @pytest.mark.asyncio
    async def test_fetch_by_ids_resolves_private_owner(self, postgrest_env):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[
                _doc("private-user-1-n1", persona_id=None),
                _doc("private-user-2-n1", persona_id=None),
            ])

        client = await _booted_client(postgrest_env, handler)
        try:
            documents = await client.do_fetch_documents_by_ids(["private-user-1-n1", "private-user-2-n1"], private_owners=["user-1"])
        finally:
            await client.close()

        assert seen["params"]["id"] == 'in.("private-user-1-n1","private-user-2-n1")'
        assert [document.owner_scope for document in documents] == ["private:user-1", "private:"]

    @pytest.mark.asyncio
    async def test_fetch_by_ids_of_nothing_sends_no_request(self, postgrest_env):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        client = await _booted_client(postgrest_env, handler)
        try:
            assert await client.do_fetch_documents_by_ids([]) == []
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_errors_raise_store_error(self, postgrest_env):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"message": "JWT expired"})

        client = await _booted_client(postgrest_env, handler)
        try:
            with pytest.raises(StoreError) as exc_info:
                await client.do_fetch_documents("user-1", ["persona-1"])
        finally:
            await client.close()

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_non_list_response_raises(self, postgrest_env):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"id": "d1"})

        client = await _booted_client(postgrest_env, handler)
        try:
            with pytest.raises(StoreError):
                await client.do_fetch_persona_ids("user-1")
        finally:
            await client.close()
