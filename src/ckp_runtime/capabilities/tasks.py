"""
task interop 执行器（`claw.task.create` / `get` / `list` / `cancel` / `subscribe`）。

约束：
- `create` 的 handler 返回值必须是合法 task 记录（字符串 task_id + 已知 state），
  否则报告 internal error，不把不合规数据转发到线上；
- `get` / `cancel` 的 handler 返回 None 表示未知 task_id（INVALID_PARAMS）。
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ValidationError

from ckp_runtime.capabilities._utils import call_handler, optional_object, optional_str, require_str
from ckp_runtime.core.errors import CkpError
from ckp_runtime.protocol.models import TaskRecord, is_task_state
from ckp_runtime.telemetry import NULL_TELEMETRY, Telemetry


@runtime_checkable
class TaskHandler(Protocol):
    """task 存储/调度接口（同步或异步实现均可）。"""

    def create(self, params: Dict[str, Any]) -> Any:
        ...

    def get(self, task_id: str) -> Any:
        ...

    def list(self, filter: Dict[str, Any]) -> Any:
        ...

    def cancel(self, task_id: str, reason: Optional[str] = None) -> Any:
        ...

    def subscribe(self, task_id: str) -> Any:
        ...


def _as_wire(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(exclude_none=True)
    return value


class TaskExecutor:
    """task 能力的协议适配层。"""

    def __init__(self, handler: TaskHandler, *, telemetry: Optional[Telemetry] = None) -> None:
        self._handler = handler
        self._telemetry = telemetry or NULL_TELEMETRY

    async def handle_create(self, params: Dict[str, Any]) -> Any:
        message = optional_object(params, "message")
        messages = params.get("messages") if isinstance(params.get("messages"), list) else None
        if message is None and not messages:
            raise CkpError.invalid_params("Task creation requires message or messages")

        create_params: Dict[str, Any] = {}
        task_id = optional_str(params, "task_id")
        if task_id is not None:
            create_params["task_id"] = task_id
        if message is not None:
            create_params["message"] = message
        if messages is not None:
            create_params["messages"] = messages
        metadata = optional_object(params, "metadata")
        if metadata is not None:
            create_params["metadata"] = metadata

        self._telemetry.emit("task_op", "claw.task.create", {})
        result = _as_wire(await call_handler("Task create", self._handler.create, create_params))
        try:
            TaskRecord.model_validate(result)
        except ValidationError:
            raise CkpError.internal("Task create handler returned invalid task record") from None
        return result

    async def handle_get(self, params: Dict[str, Any]) -> Any:
        task_id = require_str(params, "task_id")
        self._telemetry.emit("task_op", "claw.task.get", {"task_id": task_id})
        result = await call_handler("Task get", self._handler.get, task_id)
        if not result:
            raise CkpError.invalid_params(f"Unknown task_id: {task_id}")
        return _as_wire(result)

    async def handle_list(self, params: Dict[str, Any]) -> Dict[str, Any]:
        task_filter: Dict[str, Any] = {}
        state = params.get("state")
        if is_task_state(state):
            task_filter["state"] = state
        cursor = optional_str(params, "cursor")
        if cursor is not None:
            task_filter["cursor"] = cursor
        limit = params.get("limit")
        if isinstance(limit, (int, float)) and not isinstance(limit, bool) and math.isfinite(limit):
            task_filter["limit"] = max(1, math.floor(limit))

        self._telemetry.emit("task_op", "claw.task.list", {})
        tasks = await call_handler("Task list", self._handler.list, task_filter)
        items: List[Any] = [_as_wire(t) for t in (tasks or [])]
        return {"tasks": items}

    async def handle_cancel(self, params: Dict[str, Any]) -> Any:
        task_id = require_str(params, "task_id")
        reason = optional_str(params, "reason")
        self._telemetry.emit("task_op", "claw.task.cancel", {"task_id": task_id})
        result = await call_handler("Task cancel", self._handler.cancel, task_id, reason)
        if not result:
            raise CkpError.invalid_params(f"Unknown task_id: {task_id}")
        return _as_wire(result)

    async def handle_subscribe(self, params: Dict[str, Any]) -> Any:
        task_id = require_str(params, "task_id")
        self._telemetry.emit("task_op", "claw.task.subscribe", {"task_id": task_id})
        return _as_wire(await call_handler("Task subscribe", self._handler.subscribe, task_id))
