from __future__ import annotations

import asyncio
from typing import Any, Dict, List

import pytest
from pydantic import ValidationError

from ckp_runtime.capabilities import InMemoryMemoryStore, MemoryExecutor
from ckp_runtime.core.errors import CkpError


def _run(coro: Any) -> Any:
    return asyncio.run(coro)


def _error(coro: Any) -> CkpError:
    async def _inner() -> CkpError:
        with pytest.raises(CkpError) as ei:
            await coro
        return ei.value

    return asyncio.run(_inner())


def test_compact_keeps_latest_hundred() -> None:
    store = InMemoryMemoryStore(max_entries=100)
    mx = MemoryExecutor(store)
    entries = [{"content": f"entry-{i}"} for i in range(150)]

    stored = _run(mx.handle_store({"store": "notes", "entries": entries}))
    assert stored["stored"] == 150
    assert len(set(stored["ids"])) == 150

    assert _run(mx.handle_compact({"store": "notes"})) == {"entries_before": 150, "entries_after": 100}
    assert store.count("notes") == 100

    remaining = _run(mx.handle_query({"store": "notes", "query": {"type": "semantic", "text": "entry-49"}}))
    assert remaining["entries"] == []
    latest = _run(mx.handle_query({"store": "notes", "query": {"type": "semantic", "text": "entry-149"}}))
    assert [e["content"] for e in latest["entries"]] == ["entry-149"]


def test_compact_on_unknown_store_is_empty() -> None:
    mx = MemoryExecutor(InMemoryMemoryStore())
    assert _run(mx.handle_compact({"store": "empty"})) == {"entries_before": 0, "entries_after": 0}


def test_param_validation_messages() -> None:
    mx = MemoryExecutor(InMemoryMemoryStore())

    err = _error(mx.handle_store({"entries": []}))
    assert (err.code, err.message) == (-32602, "Missing store name")

    err = _error(mx.handle_store({"store": "s", "entries": "nope"}))
    assert (err.code, err.message) == (-32602, "Missing or invalid entries")

    err = _error(mx.handle_query({"store": "s"}))
    assert (err.code, err.message) == (-32602, "Missing or invalid query")

    err = _error(mx.handle_compact({}))
    assert err.code == -32602


def test_query_by_key_and_top_k() -> None:
    store = InMemoryMemoryStore()
    mx = MemoryExecutor(store)
    _run(
        mx.handle_store(
            {
                "store": "kv",
                "entries": [
                    {"content": "alpha one", "key": "a"},
                    {"content": "beta", "key": "b"},
                    {"content": "alpha two", "key": "a"},
                ],
            }
        )
    )

    by_key = _run(mx.handle_query({"store": "kv", "query": {"type": "key", "key": "a"}}))
    assert [e["content"] for e in by_key["entries"]] == ["alpha one", "alpha two"]
    assert all(e["score"] == 1.0 for e in by_key["entries"])

    limited = _run(mx.handle_query({"store": "kv", "query": {"type": "semantic", "text": "alpha", "top_k": 1}}))
    assert [e["content"] for e in limited["entries"]] == ["alpha one"]


def test_query_by_time_range() -> None:
    store = InMemoryMemoryStore()
    mx = MemoryExecutor(store)
    _run(mx.handle_store({"store": "t", "entries": [{"content": "x"}]}))
    [entry] = _run(mx.handle_query({"store": "t", "query": {"type": "semantic"}}))["entries"]

    inside = {"type": "time-range", "time_range": {"from": entry["timestamp"], "to": entry["timestamp"]}}
    assert len(_run(mx.handle_query({"store": "t", "query": inside}))["entries"]) == 1

    future = {"type": "time-range", "time_range": {"from": "9999-01-01T00:00:00Z"}}
    assert _run(mx.handle_query({"store": "t", "query": future}))["entries"] == []


def test_dict_content_is_searchable() -> None:
    mx = MemoryExecutor(InMemoryMemoryStore())
    _run(mx.handle_store({"store": "s", "entries": [{"content": {"title": "Quarterly Report"}}]}))
    hits = _run(mx.handle_query({"store": "s", "query": {"text": "quarterly"}}))
    assert hits["entries"][0]["content"] == {"title": "Quarterly Report"}


def test_wrongly_typed_query_and_entries_are_invalid_params() -> None:
    store = InMemoryMemoryStore()
    mx = MemoryExecutor(store)

    err = _error(mx.handle_query({"store": "s", "query": "hello"}))
    assert (err.code, err.message) == (-32602, "Missing or invalid query")

    for entries in (["x"], [{"key": "missing-content"}], [{"content": "ok"}, {"content": 5}]):
        err = _error(mx.handle_store({"store": "s", "entries": entries}))
        assert (err.code, err.message) == (-32602, "Missing or invalid entries")
    assert store.count("s") == 0

    # 空 query 对象合法：semantic 无 text 时返回全部
    assert _run(mx.handle_query({"store": "s", "query": {}})) == {"entries": []}


def test_failed_store_batch_writes_nothing() -> None:
    store = InMemoryMemoryStore()
    _run(store.store("s", [{"content": "existing"}]))

    with pytest.raises(ValidationError):
        _run(store.store("s", [{"content": "ok"}, {"key": "no-content"}]))
    assert store.count("s") == 1


def test_handler_failure_is_labelled() -> None:
    class _Down:
        def store(self, store: str, entries: List[Dict[str, Any]]) -> Any:
            raise ConnectionError("db down")

        def query(self, store: str, query: Dict[str, Any]) -> Any:
            raise ConnectionError("db down")

        def compact(self, store: str) -> Any:
            raise CkpError.invalid_params("custom")

    mx = MemoryExecutor(_Down())
    err = _error(mx.handle_query({"store": "s", "query": {"text": "x"}}))
    assert (err.code, err.message) == (-32603, "Memory query error: db down")

    # handler 主动抛出的 CkpError 保留原错误码
    err = _error(mx.handle_compact({"store": "s"}))
    assert (err.code, err.message) == (-32602, "custom")
