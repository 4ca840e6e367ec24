"""
L3 swarm 执行器（`claw.swarm.delegate` / `discover` / `report` / `broadcast`）。

约束：
- `broadcast` 是 notification：无论 handler 成败都不产生响应，失败只记 debug 日志；
- 其它方法的 handler 异常映射为 `-32603 "Swarm <op> error: <message>"`。
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Dict, Mapping, Optional, Protocol, Set, runtime_checkable

from ckp_runtime.capabilities._utils import call_handler, optional_object, optional_str, require_str
from ckp_runtime.core.errors import CkpError
from ckp_runtime.telemetry import NULL_TELEMETRY, Telemetry

logger = logging.getLogger(__name__)


@runtime_checkable
class SwarmHandler(Protocol):
    """swarm 协调接口（同步或异步实现均可）。"""

    def delegate(self, task_id: str, task: Dict[str, Any], context: Dict[str, Any]) -> Any:
        ...

    def discover(self, swarm: Optional[str] = None) -> Any:
        ...

    def report(self, task_id: str, status: str, result: Dict[str, Any]) -> Any:
        ...

    def broadcast(self, swarm: str, message: Dict[str, Any]) -> Any:
        ...


class SwarmExecutor:
    """swarm 能力的协议适配层。"""

    def __init__(self, handler: SwarmHandler, *, telemetry: Optional[Telemetry] = None) -> None:
        self._handler = handler
        self._telemetry = telemetry or NULL_TELEMETRY
        self._background: Set["asyncio.Task[Any]"] = set()

    async def handle_delegate(self, params: Dict[str, Any]) -> Any:
        task_id = require_str(params, "task_id")
        task = params.get("task")
        if not isinstance(task, Mapping):
            raise CkpError.invalid_params("Missing task.description")
        require_str(task, "description", "Missing task.description")
        context = optional_object(params, "context") or {"request_id": "", "swarm": ""}
        self._telemetry.emit("swarm_op", "claw.swarm.delegate", {"task_id": task_id})
        return await call_handler("Swarm delegate", self._handler.delegate, task_id, dict(task), context)

    async def handle_discover(self, params: Dict[str, Any]) -> Any:
        swarm = optional_str(params, "swarm")
        self._telemetry.emit("swarm_op", "claw.swarm.discover", {"swarm": swarm})
        return await call_handler("Swarm discover", self._handler.discover, swarm)

    async def handle_report(self, params: Dict[str, Any]) -> Any:
        task_id = require_str(params, "task_id")
        status = require_str(params, "status")
        result = optional_object(params, "result") or {}
        self._telemetry.emit("swarm_op", "claw.swarm.report", {"task_id": task_id, "status": status})
        return await call_handler("Swarm report", self._handler.report, task_id, status, result)

    def handle_broadcast(self, params: Dict[str, Any]) -> None:
        """处理 broadcast 通知（fire-and-forget，永不抛出）。"""

        swarm = optional_str(params, "swarm") or ""
        message = optional_object(params, "message") or {}
        self._telemetry.emit("swarm_op", "claw.swarm.broadcast", {"swarm": swarm})
        try:
            out = self._handler.broadcast(swarm, message)
        except Exception:
            logger.debug("swarm broadcast handler failed (swarm=%s)", swarm, exc_info=True)
            return
        if inspect.isawaitable(out):
            task = asyncio.ensure_future(self._await_quietly(out, swarm))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    @staticmethod
    async def _await_quietly(awaitable: Any, swarm: str) -> None:
        try:
            await awaitable
        except Exception:
            logger.debug("async swarm broadcast failed (swarm=%s)", swarm, exc_info=True)
