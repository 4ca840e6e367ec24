from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, List

import pytest

from ckp_runtime import AgentOptions, MemoryTransport, create_agent
from ckp_runtime.telemetry import LoggingTelemetryHandler, Telemetry, TelemetryEvent


def test_event_model_defaults() -> None:
    ev = TelemetryEvent(type="lifecycle", name="state_change")
    assert ev.timestamp.endswith("Z")
    assert ev.payload == {}


def test_no_handlers_means_disabled() -> None:
    t = Telemetry()
    assert t.is_enabled("lifecycle") is False
    t.emit("lifecycle", "x", {"a": 1})


def test_enabled_types_filter() -> None:
    events: List[TelemetryEvent] = []
    t = Telemetry([events.append], enabled_types=["tool_call"])
    t.emit("lifecycle", "state_change")
    t.emit("tool_call", "claw.tool.call", {"tool": "echo"})
    assert [e.type for e in events] == ["tool_call"]


def test_handler_failures_never_propagate() -> None:
    events: List[TelemetryEvent] = []

    def _boom(event: TelemetryEvent) -> None:
        raise RuntimeError("sink down")

    t = Telemetry([_boom, events.append])
    t.emit("error", "x")
    # 非法类别被丢弃而不是抛出
    t.emit("not-a-type", "x")
    assert len(events) == 1


def test_async_handler_failure_is_swallowed() -> None:
    async def _failing(event: TelemetryEvent) -> None:
        raise RuntimeError("async sink down")

    async def _run() -> None:
        t = Telemetry([_failing])
        t.emit("error", "x")
        await asyncio.sleep(0.01)

    asyncio.run(_run())


def test_async_handler_without_loop_is_closed() -> None:
    seen: List[str] = []

    async def _handler(event: TelemetryEvent) -> None:
        seen.append(event.name)

    Telemetry([_handler]).emit("error", "x")
    assert seen == []


def test_handler_object_with_emit_method() -> None:
    class _Collector:
        def __init__(self) -> None:
            self.events: List[TelemetryEvent] = []

        def emit(self, event: TelemetryEvent) -> Any:
            self.events.append(event)

    c = _Collector()
    Telemetry([c]).emit("memory_op", "claw.memory.store", {"store": "s"})
    assert c.events[0].payload == {"store": "s"}


def test_logging_handler_writes_event(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="ckp_runtime.telemetry.events"):
        Telemetry([LoggingTelemetryHandler()]).emit("lifecycle", "state_change", {"from": "INIT", "to": "STARTING"})
    assert any("state_change" in r.getMessage() for r in caplog.records)


def test_agent_emits_lifecycle_events() -> None:
    events: List[TelemetryEvent] = []

    async def _run() -> None:
        agent = create_agent(
            AgentOptions(name="t", version="1", heartbeat_interval_ms=0, telemetry=Telemetry([events.append])),
            transport=MemoryTransport(),
        )
        init = {"protocolVersion": "0.2.0", "clientInfo": {}, "manifest": {}, "capabilities": {}}
        await agent.handle(json.dumps({"jsonrpc": "2.0", "id": 1, "method": "claw.initialize", "params": init}))
        await agent.close()

    asyncio.run(_run())
    transitions = [(e.payload["from"], e.payload["to"]) for e in events if e.type == "lifecycle"]
    assert transitions == [("INIT", "STARTING"), ("STARTING", "READY")]
