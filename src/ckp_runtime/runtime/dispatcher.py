"""
JSON-RPC 方法分发器。

单行输入的处理顺序（固定）：
1) 解析 JSON；失败 → PARSE_ERROR（id 为 null）
2) 信封校验（jsonrpc == "2.0"、method 为字符串、id 类型合法）；失败 → INVALID_REQUEST（尽量保留 id）
3) params 若存在必须是 object；失败 → INVALID_PARAMS（仅对 request 响应）
4) 生命周期合法性：INIT 状态下只允许 initialize；失败 → INVALID_REQUEST（notification 静默丢弃）
5) 查表：未注册 → METHOD_NOT_FOUND（notification 静默丢弃）
6) 调用 handler：CkpError → 对应错误；其它异常 → -32603（仅对 request 响应）

约束：
- 每行输入至多产生一条响应；notification 永不产生响应；
- 每行独立调度为一个 task，慢 handler 不阻塞后续输入；响应顺序不保证与请求顺序一致。
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Set

from ckp_runtime.core.errors import CkpError
from ckp_runtime.core.utils import error_message, maybe_await
from ckp_runtime.protocol.codes import INITIALIZE, JSONRPC_VERSION, ErrorCode
from ckp_runtime.protocol.messages import error_response, is_notification, is_valid_id, ok_response, salvage_id
from ckp_runtime.runtime.lifecycle import LifecycleState, LifecycleStateMachine
from ckp_runtime.telemetry import NULL_TELEMETRY, Telemetry
from ckp_runtime.transport import encode_frame

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Any]


@dataclass(frozen=True)
class MethodSpec:
    """
    方法注册项。

    字段：
    - handler：`handler(params)`，返回 result 或其 awaitable；协议错误通过抛 CkpError 表达
    - notification_only：为 True 时即使消息带 id 也不响应（initialized / broadcast）
    - lifecycle：为 True 时在 READY 之外的非 INIT 状态仍可调用（status / shutdown / initialized）
    """

    handler: Handler
    notification_only: bool = False
    lifecycle: bool = False


class MethodDispatcher:
    """
    方法分发器。

    参数：
    - registry：方法名 → MethodSpec（构造后不可变）
    - lifecycle：生命周期状态机（只读）
    - send：帧发送函数
    - telemetry：telemetry 出口
    """

    def __init__(
        self,
        *,
        registry: Mapping[str, MethodSpec],
        lifecycle: LifecycleStateMachine,
        send: Callable[[Dict[str, Any]], None],
        telemetry: Optional[Telemetry] = None,
    ) -> None:
        self._registry = registry
        self._lifecycle = lifecycle
        self._send = send
        self._telemetry = telemetry or NULL_TELEMETRY
        self._in_flight: Set["asyncio.Task[Any]"] = set()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def handle_line(self, raw: str) -> "asyncio.Task[Any]":
        """为一行输入调度一个独立 task（不等待其完成）。"""

        task = asyncio.get_running_loop().create_task(self.process(raw))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def drain(self, timeout_ms: Optional[int] = None) -> bool:
        """
        等待除当前 task 之外的在途请求完成。

        返回：
        - True：全部完成；False：超时仍有未完成
        """

        current = asyncio.current_task()
        others = {t for t in self._in_flight if t is not current and not t.done()}
        if not others:
            return True
        timeout = None if timeout_ms is None else max(0, timeout_ms) / 1000.0
        _done, pending = await asyncio.wait(others, timeout=timeout)
        return not pending

    async def process(self, raw: str) -> Optional[Dict[str, Any]]:
        """分发一行并写出响应（若有）；返回写出的帧。"""

        frame = await self.dispatch(raw)
        if frame is not None:
            frame = self._write(frame)
        return frame

    async def dispatch(self, raw: str) -> Optional[Dict[str, Any]]:
        """分发一行输入，返回应写出的响应帧（notification 或无响应时返回 None）。"""

        try:
            msg = json.loads(raw)
        except (TypeError, ValueError):
            return error_response(None, ErrorCode.PARSE_ERROR, "Parse error")

        if not isinstance(msg, dict):
            return error_response(None, ErrorCode.INVALID_REQUEST, "Invalid request")

        request_id = salvage_id(msg)
        if (
            msg.get("jsonrpc") != JSONRPC_VERSION
            or not isinstance(msg.get("method"), str)
            or ("id" in msg and not is_valid_id(msg.get("id")))
        ):
            return error_response(request_id, ErrorCode.INVALID_REQUEST, "Invalid request")

        method: str = msg["method"]
        is_request = not is_notification(msg)

        params = msg.get("params")
        if params is None:
            params = {}
        elif not isinstance(params, dict):
            if not is_request:
                return None
            return error_response(request_id, ErrorCode.INVALID_PARAMS, "params must be an object")

        state = self._lifecycle.state
        if state is LifecycleState.INIT and method != INITIALIZE:
            return self._illegal(request_id, is_request, method, "Agent not initialized")

        spec = self._registry.get(method)
        if spec is None:
            if not is_request:
                return None
            return error_response(request_id, ErrorCode.METHOD_NOT_FOUND, f"Method not found: {method}")

        if method == INITIALIZE and state is not LifecycleState.INIT:
            return self._illegal(request_id, is_request, method, "Agent already initialized")
        if state is not LifecycleState.INIT and state is not LifecycleState.READY and not spec.lifecycle:
            return self._illegal(request_id, is_request, method, f"Method not allowed in state {state.value}")

        respond = is_request and not spec.notification_only
        try:
            result = await maybe_await(spec.handler(params))
        except CkpError as e:
            if not respond:
                logger.debug("notification %s raised %s", method, e)
                return None
            return error_response(request_id, e.code, e.message, e.data)
        except Exception as e:
            if not respond:
                logger.debug("notification handler failed (method=%s)", method, exc_info=True)
                return None
            logger.exception("handler failed (method=%s)", method)
            self._telemetry.emit("error", method, {"code": int(ErrorCode.INTERNAL_ERROR)})
            return error_response(request_id, ErrorCode.INTERNAL_ERROR, f"Internal error: {error_message(e)}")

        if not respond:
            return None
        return ok_response(request_id, result)

    def _illegal(self, request_id: Any, is_request: bool, method: str, message: str) -> Optional[Dict[str, Any]]:
        self._telemetry.emit(
            "error",
            method,
            {"code": int(ErrorCode.INVALID_REQUEST), "state": self._lifecycle.state.value},
        )
        if not is_request:
            return None
        return error_response(request_id, ErrorCode.INVALID_REQUEST, message)

    def _write(self, frame: Dict[str, Any]) -> Dict[str, Any]:
        try:
            encode_frame(frame)
        except (TypeError, ValueError) as e:
            logger.error("response for id=%r is not JSON serializable: %s", frame.get("id"), e)
            frame = error_response(frame.get("id"), ErrorCode.INTERNAL_ERROR, f"Internal error: {error_message(e)}")
        try:
            self._send(frame)
        except Exception:
            logger.warning("failed to write response (id=%r)", frame.get("id"), exc_info=True)
        return frame
