"""
L3 memory 执行器（`claw.memory.store` / `query` / `compact`）。

说明：
- 执行器只做参数校验与错误映射，存储语义由外部 `MemoryHandler` 决定；
- entries 的每一项在进入 handler 前按 `MemoryEntry` 校验，不合法时整批拒绝（INVALID_PARAMS）；
- handler 的返回值原样作为响应 result。
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from pydantic import ValidationError

from ckp_runtime.capabilities._utils import call_handler, require_str
from ckp_runtime.core.errors import CkpError
from ckp_runtime.protocol.models import MemoryEntry
from ckp_runtime.telemetry import NULL_TELEMETRY, Telemetry


@runtime_checkable
class MemoryHandler(Protocol):
    """
    memory 存储接口（同步或异步实现均可）。

    约定：
    - store(store, entries) → `{"stored": int, "ids": [...]}`
    - query(store, query) → `{"entries": [...]}`
    - compact(store) → `{"entries_before": int, "entries_after": int}`
    """

    def store(self, store: str, entries: List[Dict[str, Any]]) -> Any:
        ...

    def query(self, store: str, query: Dict[str, Any]) -> Any:
        ...

    def compact(self, store: str) -> Any:
        ...


def _is_valid_entry(raw: Any) -> bool:
    if not isinstance(raw, Mapping):
        return False
    try:
        MemoryEntry.model_validate(raw)
    except ValidationError:
        return False
    return True


class MemoryExecutor:
    """memory 能力的协议适配层。"""

    def __init__(self, handler: MemoryHandler, *, telemetry: Optional[Telemetry] = None) -> None:
        self._handler = handler
        self._telemetry = telemetry or NULL_TELEMETRY

    async def handle_store(self, params: Dict[str, Any]) -> Any:
        store = require_str(params, "store", "Missing store name")
        entries = params.get("entries")
        if not isinstance(entries, list) or not all(_is_valid_entry(e) for e in entries):
            raise CkpError.invalid_params("Missing or invalid entries")
        self._telemetry.emit("memory_op", "claw.memory.store", {"store": store, "count": len(entries)})
        return await call_handler("Memory store", self._handler.store, store, entries)

    async def handle_query(self, params: Dict[str, Any]) -> Any:
        store = require_str(params, "store", "Missing store name")
        query = params.get("query")
        if not isinstance(query, Mapping):
            raise CkpError.invalid_params("Missing or invalid query")
        self._telemetry.emit("memory_op", "claw.memory.query", {"store": store})
        return await call_handler("Memory query", self._handler.query, store, query)

    async def handle_compact(self, params: Dict[str, Any]) -> Any:
        store = require_str(params, "store", "Missing store name")
        self._telemetry.emit("memory_op", "claw.memory.compact", {"store": store})
        return await call_handler("Memory compact", self._handler.compact, store)
