from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, Optional

import pytest

from ckp_runtime import AgentOptions, MemoryTransport, create_agent
from ckp_runtime.capabilities import InMemoryMemoryStore, StaticSwarmHandler, SwarmExecutor
from ckp_runtime.core.errors import CkpError

PEER = {"identity": "peer-1", "uri": "claw://local/identity/peer-1", "status": "ready"}


def _error(coro: Any) -> CkpError:
    async def _inner() -> CkpError:
        with pytest.raises(CkpError) as ei:
            await coro
        return ei.value

    return asyncio.run(_inner())


def test_delegate_validates_and_defaults_context() -> None:
    handler = StaticSwarmHandler([PEER])
    sx = SwarmExecutor(handler)

    assert _error(sx.handle_delegate({"task": {"description": "x"}})).message == "Missing task_id"
    assert _error(sx.handle_delegate({"task_id": "t1"})).message == "Missing task.description"
    assert _error(sx.handle_delegate({"task_id": "t1", "task": {"description": ""}})).code == -32602
    assert _error(sx.handle_delegate({"task_id": "t1", "task": {"description": 5}})).message == "Missing task.description"
    assert _error(sx.handle_delegate({"task_id": "t1", "task": "summarize"})).code == -32602

    out = asyncio.run(sx.handle_delegate({"task_id": "t1", "task": {"description": "summarize"}}))
    assert out == {"acknowledged": True}
    assert handler.delegated == [
        {"task_id": "t1", "task": {"description": "summarize"}, "context": {"request_id": "", "swarm": ""}}
    ]


def test_discover_and_report() -> None:
    handler = StaticSwarmHandler([PEER])
    sx = SwarmExecutor(handler)

    assert asyncio.run(sx.handle_discover({})) == {"peers": [PEER]}
    assert asyncio.run(sx.handle_report({"task_id": "t1", "status": "completed"})) == {"acknowledged": True}
    assert handler.reports == [{"task_id": "t1", "status": "completed", "result": {}}]
    assert _error(sx.handle_report({"task_id": "t1"})).message == "Missing status"


def test_handler_errors_are_labelled() -> None:
    class _Broken(StaticSwarmHandler):
        async def delegate(self, task_id: str, task: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
            raise RuntimeError("nope")

    err = _error(SwarmExecutor(_Broken()).handle_delegate({"task_id": "t", "task": {"description": "d"}}))
    assert (err.code, err.message) == (-32603, "Swarm delegate error: nope")


def test_broadcast_never_raises() -> None:
    class _SyncFail(StaticSwarmHandler):
        def broadcast(self, swarm: str, message: Dict[str, Any]) -> None:
            raise RuntimeError("offline")

    class _AsyncFail(StaticSwarmHandler):
        async def broadcast(self, swarm: str, message: Dict[str, Any]) -> None:  # type: ignore[override]
            raise RuntimeError("offline")

    async def _run() -> None:
        assert SwarmExecutor(_SyncFail()).handle_broadcast({"swarm": "s", "message": {}}) is None
        assert SwarmExecutor(_AsyncFail()).handle_broadcast({"swarm": "s", "message": {}}) is None
        await asyncio.sleep(0.01)

    asyncio.run(_run())


def test_broadcast_via_agent_produces_no_response() -> None:
    async def _run() -> Any:
        transport = MemoryTransport()
        handler = StaticSwarmHandler([PEER])
        agent = create_agent(
            AgentOptions(
                name="swarm",
                version="1",
                heartbeat_interval_ms=0,
                memory=InMemoryMemoryStore(),
                swarm=handler,
            ),
            transport=transport,
        )
        init = {"protocolVersion": "0.2.0", "clientInfo": {}, "manifest": {}, "capabilities": {}}
        await agent.handle(json.dumps({"jsonrpc": "2.0", "id": 1, "method": "claw.initialize", "params": init}))
        msg = {"swarm": "team", "message": {"text": "hello"}}
        with_id: Optional[Dict[str, Any]] = await agent.handle(
            json.dumps({"jsonrpc": "2.0", "id": 2, "method": "claw.swarm.broadcast", "params": msg})
        )
        without_id = await agent.handle(json.dumps({"jsonrpc": "2.0", "method": "claw.swarm.broadcast", "params": msg}))
        await agent.close()
        return with_id, without_id, handler.broadcasts, len(transport.sent)

    with_id, without_id, broadcasts, sent = asyncio.run(_run())
    assert with_id is None
    assert without_id is None
    assert len(broadcasts) == 2
    assert sent == 1
