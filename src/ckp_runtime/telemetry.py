"""
Telemetry（旁路事件出口）。

约束：
- fire-and-forget：handler 的同步异常、异步失败都不得影响协议主链路（fail-open）；
- 事件 payload 不包含工具参数与工具结果（只包含名称、错误码、耗时等元数据）；
- 按类别过滤：未启用的类别直接丢弃。
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, Iterable, Literal, Optional, Protocol, Set, Union, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from ckp_runtime.core.utils import now_rfc3339

logger = logging.getLogger(__name__)

TelemetryType = Literal["lifecycle", "tool_call", "memory_op", "swarm_op", "task_op", "error"]


class TelemetryEvent(BaseModel):
    """一条 telemetry 事件。"""

    model_config = ConfigDict(extra="forbid")

    type: TelemetryType
    name: str
    timestamp: str = Field(default_factory=now_rfc3339)
    payload: Dict[str, Any] = Field(default_factory=dict)


@runtime_checkable
class TelemetryHandler(Protocol):
    """telemetry 接收方（可同步，也可返回 awaitable）。"""

    def emit(self, event: TelemetryEvent) -> Any:
        ...


TelemetrySink = Union[TelemetryHandler, Callable[[TelemetryEvent], Any]]


class LoggingTelemetryHandler:
    """把事件写到 logging（默认 logger：`ckp_runtime.telemetry.events`）。"""

    def __init__(self, *, logger_name: str = "ckp_runtime.telemetry.events", level: int = logging.INFO) -> None:
        self._logger = logging.getLogger(logger_name)
        self._level = level

    def emit(self, event: TelemetryEvent) -> None:
        self._logger.log(self._level, "%s %s %s", event.type, event.name, event.payload)


class Telemetry:
    """
    telemetry 发射器（单点出口）。

    参数：
    - handlers：接收方列表（TelemetryHandler 或普通 callable）
    - enabled_types：启用的事件类别；None 表示全部启用
    """

    def __init__(
        self,
        handlers: Optional[Iterable[TelemetrySink]] = None,
        *,
        enabled_types: Optional[Iterable[str]] = None,
    ) -> None:
        self._handlers = list(handlers or [])
        self._enabled: Optional[Set[str]] = set(enabled_types) if enabled_types is not None else None
        self._background: Set["asyncio.Task[Any]"] = set()

    def is_enabled(self, event_type: str) -> bool:
        if not self._handlers:
            return False
        return self._enabled is None or event_type in self._enabled

    def emit(self, event_type: str, name: str, payload: Optional[Dict[str, Any]] = None) -> None:
        """发出一条事件（fail-open，永不抛出）。"""

        if not self.is_enabled(event_type):
            return
        try:
            event = TelemetryEvent(type=event_type, name=name, payload=dict(payload or {}))  # type: ignore[arg-type]
        except Exception:
            logger.debug("telemetry event rejected (type=%s, name=%s)", event_type, name, exc_info=True)
            return
        for handler in self._handlers:
            try:
                fn = handler.emit if isinstance(handler, TelemetryHandler) else handler
                out = fn(event)
                if inspect.isawaitable(out):
                    self._track(out)
            except Exception:
                # fail-open：telemetry 失败只影响可观测性
                logger.debug("telemetry handler failed (type=%s, name=%s)", event_type, name, exc_info=True)

    def _track(self, awaitable: Any) -> None:
        async def _run() -> None:
            try:
                await awaitable
            except Exception:
                logger.debug("async telemetry handler failed", exc_info=True)

        try:
            task = asyncio.get_running_loop().create_task(_run())
        except RuntimeError:
            # 无运行中的事件循环：关闭 awaitable 避免 "never awaited" 警告
            close = getattr(awaitable, "close", None)
            if callable(close):
                close()
            return
        self._background.add(task)
        task.add_done_callback(self._background.discard)


NULL_TELEMETRY = Telemetry()
