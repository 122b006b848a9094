"""Tests for record keys and store implementations."""

import json

import httpx
import pytest

from finflow.domain.errors import StoreError
from finflow.repositories.base import RecordKind, record_key
from finflow.repositories.memory import InMemoryRecordStore
from finflow.repositories.supabase import SupabaseRecordStore


def test_record_key_composition():
    assert record_key("abc", RecordKind.CHAT) == "user:abc:chat"
    assert record_key("abc", "loans") == "user:abc:loans"


def test_record_key_rejects_bad_input():
    with pytest.raises(ValueError):
        record_key("", RecordKind.CHAT)
    with pytest.raises(ValueError):
        record_key("abc", "savings")


@pytest.mark.asyncio
async def test_memory_store_missing_key_is_empty():
    store = InMemoryRecordStore()
    assert await store.read("user:nobody:chat") == []


@pytest.mark.asyncio
async def test_memory_store_isolates_callers_from_stored_state():
    store = InMemoryRecordStore()
    records = [{"id": "1"}]
    await store.write("k", records)
    records.append({"id": "2"})

    read = await store.read("k")
    read.append({"id": "3"})

    assert await store.read("k") == [{"id": "1"}]


class KvTable:
    """Minimal PostgREST stand-in for the kv_store table."""

    def __init__(self, fail: bool = False):
        self.rows = {}
        self.fail = fail
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail:
            return httpx.Response(503, text="unavailable")
        if request.method == "GET":
            key = request.url.params["key"].removeprefix("eq.")
            return httpx.Response(200, json=[{"value": self.rows[key]}] if key in self.rows else [])
        body = json.loads(request.content)
        self.rows[body["key"]] = body["value"]
        return httpx.Response(201)

    def store(self) -> SupabaseRecordStore:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler),
            base_url="https://project.supabase.co/rest/v1",
        )
        return SupabaseRecordStore("https://project.supabase.co", "service-key", client=client)


@pytest.mark.asyncio
async def test_supabase_store_round_trip():
    table = KvTable()
    store = table.store()

    assert await store.read("user:u:loans") == []
    await store.write("user:u:loans", [{"id": "1"}])
    assert await store.read("user:u:loans") == [{"id": "1"}]

    upsert = table.requests[1]
    assert upsert.method == "POST"
    assert upsert.headers["prefer"] == "resolution=merge-duplicates"
    assert upsert.url.path == "/rest/v1/kv_store"


@pytest.mark.asyncio
async def test_supabase_store_failures_raise_store_error():
    store = KvTable(fail=True).store()
    with pytest.raises(StoreError):
        await store.read("user:u:chat")
    with pytest.raises(StoreError):
        await store.write("user:u:chat", [])
