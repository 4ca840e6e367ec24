from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from ckp_runtime.capabilities import InMemoryTaskStore, TaskExecutor
from ckp_runtime.core.errors import CkpError

USER_MESSAGE = {"role": "user", "content": [{"type": "text", "text": "hello"}]}


def _error(coro: Any) -> CkpError:
    async def _inner() -> CkpError:
        with pytest.raises(CkpError) as ei:
            await coro
        return ei.value

    return asyncio.run(_inner())


def test_create_requires_message() -> None:
    kx = TaskExecutor(InMemoryTaskStore())
    err = _error(kx.handle_create({}))
    assert (err.code, err.message) == (-32602, "Task creation requires message or messages")
    assert _error(kx.handle_create({"messages": []})).code == -32602


def test_create_get_cancel_flow() -> None:
    async def _run() -> List[Any]:
        kx = TaskExecutor(InMemoryTaskStore())
        created = await kx.handle_create({"message": USER_MESSAGE})
        fetched = await kx.handle_get({"task_id": created["task_id"]})
        canceled = await kx.handle_cancel({"task_id": created["task_id"]})
        return [created, fetched, canceled]

    created, fetched, canceled = asyncio.run(_run())
    assert created["task_id"] == "task-0001"
    assert created["state"] == "submitted"
    assert created["messages"] == [USER_MESSAGE]
    assert fetched == created
    assert canceled["state"] == "canceled"
    assert canceled["metadata"]["canceled_reason"] == "unspecified"
    assert canceled["metadata"]["canceled_at"].endswith("Z")


def test_duplicate_task_id_is_rejected_without_overwrite() -> None:
    async def _run() -> List[Any]:
        kx = TaskExecutor(InMemoryTaskStore())
        first = await kx.handle_create({"task_id": "task-0001", "message": USER_MESSAGE})
        with pytest.raises(CkpError) as ei:
            await kx.handle_create({"task_id": "task-0001", "message": {"role": "user", "content": []}})
        kept = await kx.handle_get({"task_id": "task-0001"})
        generated = await kx.handle_create({"message": USER_MESSAGE})
        return [first, ei.value, kept, generated]

    first, err, kept, generated = asyncio.run(_run())
    assert (err.code, err.message) == (-32602, "Task already exists: task-0001")
    assert kept == first
    assert generated["task_id"] == "task-0002"


def test_unknown_task_id() -> None:
    kx = TaskExecutor(InMemoryTaskStore())
    err = _error(kx.handle_get({"task_id": "nope"}))
    assert (err.code, err.message) == (-32602, "Unknown task_id: nope")
    assert _error(kx.handle_cancel({"task_id": "nope", "reason": "x"})).message == "Unknown task_id: nope"
    assert _error(kx.handle_get({})).message == "Missing task_id"


def test_a2a_message_in_metadata_is_normalized() -> None:
    a2a_message = {"role": "agent", "parts": [{"kind": "text", "text": "from a2a"}]}
    kx = TaskExecutor(InMemoryTaskStore())
    created = asyncio.run(kx.handle_create({"message": USER_MESSAGE, "metadata": {"a2a_message": a2a_message}}))
    assert created["messages"][1]["role"] == "agent"
    assert created["messages"][1]["content"] == [{"type": "text", "text": "from a2a"}]


class _Recording:
    def __init__(self, create_result: Any = None) -> None:
        self.create_result = create_result
        self.filters: List[Dict[str, Any]] = []

    def create(self, params: Dict[str, Any]) -> Any:
        return self.create_result

    def get(self, task_id: str) -> Any:
        return None

    def list(self, filter: Dict[str, Any]) -> Any:
        self.filters.append(filter)
        return [{"task_id": "t-1", "state": "working"}]

    def cancel(self, task_id: str, reason: Optional[str] = None) -> Any:
        return None

    def subscribe(self, task_id: str) -> Any:
        return {"task_id": task_id, "subscribed": True}


@pytest.mark.parametrize(
    "record",
    [
        {"task_id": 1, "state": "submitted"},
        {"task_id": "x", "state": "done"},
        {"state": "submitted"},
        None,
    ],
)
def test_invalid_create_record_is_internal_error(record: Any) -> None:
    err = _error(TaskExecutor(_Recording(create_result=record)).handle_create({"message": USER_MESSAGE}))
    assert (err.code, err.message) == (-32603, "Task create handler returned invalid task record")


def test_list_builds_filter() -> None:
    handler = _Recording()
    kx = TaskExecutor(handler)

    out = asyncio.run(kx.handle_list({"state": "working", "limit": 2.7, "cursor": "c1"}))
    assert out == {"tasks": [{"task_id": "t-1", "state": "working"}]}
    asyncio.run(kx.handle_list({"state": "bogus", "limit": 0}))
    asyncio.run(kx.handle_list({"limit": True}))

    assert handler.filters == [
        {"state": "working", "cursor": "c1", "limit": 2},
        {"limit": 1},
        {},
    ]


def test_list_and_subscribe_with_in_memory_store() -> None:
    async def _run() -> List[Any]:
        store = InMemoryTaskStore()
        kx = TaskExecutor(store)
        a = await kx.handle_create({"message": USER_MESSAGE})
        await kx.handle_create({"messages": [USER_MESSAGE]})
        store.set_state(a["task_id"], "working")
        return [
            await kx.handle_list({"state": "working"}),
            await kx.handle_list({"limit": 1}),
            await kx.handle_subscribe({"task_id": a["task_id"]}),
            await kx.handle_subscribe({"task_id": "missing"}),
        ]

    working, limited, sub, missing = asyncio.run(_run())
    assert [t["task_id"] for t in working["tasks"]] == ["task-0001"]
    assert len(limited["tasks"]) == 1
    assert sub == {"task_id": "task-0001", "subscribed": True, "state": "working"}
    assert missing == {"task_id": "missing", "subscribed": False}
