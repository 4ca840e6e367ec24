"""
参考 handler 实现（进程内，非持久化）。

用途：
- 示例 agent 与测试；
- 嵌入方在接入真实后端前的占位实现。
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional

from ckp_runtime.a2a import map_a2a_message_to_ckp_task_message
from ckp_runtime.core.errors import CkpError
from ckp_runtime.core.utils import now_rfc3339
from ckp_runtime.protocol.models import MemoryEntry, SwarmPeer

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 100


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, dict):
        return " ".join(str(v) for v in content.values())
    return str(content)


class InMemoryMemoryStore:
    """
    进程内 memory store。

    约束：
    - compact 只保留最新的 `max_entries` 条（默认 100）；
    - query：`key` 精确匹配 key；`time-range` 按 RFC3339 字符串比较闭区间；
      `semantic` 为朴素子串匹配（无 text 时返回全部）；`top_k` 截断结果。
    """

    def __init__(self, *, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self._max_entries = max(0, int(max_entries))
        self._stores: Dict[str, List[Dict[str, Any]]] = {}

    def count(self, store: str) -> int:
        return len(self._stores.get(store, []))

    async def store(self, store: str, entries: List[Dict[str, Any]]) -> Dict[str, Any]:
        # 先整批校验，失败时不写入任何条目
        validated = [MemoryEntry.model_validate(raw) for raw in entries]
        records: List[Dict[str, Any]] = []
        for entry in validated:
            entry_id = str(uuid.uuid4())
            record: Dict[str, Any] = {"id": entry_id, "content": entry.content, "timestamp": now_rfc3339()}
            if entry.key is not None:
                record["key"] = entry.key
            if entry.metadata is not None:
                record["metadata"] = entry.metadata
            records.append(record)
        self._stores.setdefault(store, []).extend(records)
        ids = [r["id"] for r in records]
        return {"stored": len(ids), "ids": ids}

    async def query(self, store: str, query: Dict[str, Any]) -> Dict[str, Any]:
        bucket = self._stores.get(store, [])
        qtype = query.get("type", "semantic")
        if qtype == "key":
            matched = [e for e in bucket if e.get("key") == query.get("key")]
        elif qtype == "time-range":
            rng = query.get("time_range") or {}
            start = str(rng.get("from") or "")
            end = str(rng.get("to") or "")
            matched = [e for e in bucket if (not start or e["timestamp"] >= start) and (not end or e["timestamp"] <= end)]
        else:
            text = str(query.get("text") or "").lower()
            matched = [e for e in bucket if not text or text in _content_text(e["content"]).lower()]

        top_k = query.get("top_k")
        if isinstance(top_k, int) and not isinstance(top_k, bool) and top_k > 0:
            matched = matched[:top_k]
        return {
            "entries": [
                {"id": e["id"], "content": e["content"], "score": 1.0, "timestamp": e["timestamp"]} for e in matched
            ]
        }

    async def compact(self, store: str) -> Dict[str, int]:
        bucket = self._stores.get(store, [])
        before = len(bucket)
        kept = bucket[-self._max_entries :] if self._max_entries else []
        self._stores[store] = kept
        return {"entries_before": before, "entries_after": len(kept)}


class StaticSwarmHandler:
    """
    固定 peer 列表的 swarm handler。

    说明：
    - delegate / report 只做确认并记录；
    - broadcast 记录到 `broadcasts`（便于测试观测）。
    """

    def __init__(self, peers: Optional[Iterable[Any]] = None) -> None:
        self._peers = [SwarmPeer.model_validate(p) for p in (peers or [])]
        self.delegated: List[Dict[str, Any]] = []
        self.reports: List[Dict[str, Any]] = []
        self.broadcasts: List[Dict[str, Any]] = []

    async def delegate(self, task_id: str, task: Dict[str, Any], context: Dict[str, Any]) -> Dict[str, Any]:
        self.delegated.append({"task_id": task_id, "task": task, "context": context})
        return {"acknowledged": True}

    async def discover(self, swarm: Optional[str] = None) -> Dict[str, Any]:
        return {"peers": [p.model_dump() for p in self._peers]}

    async def report(self, task_id: str, status: str, result: Dict[str, Any]) -> Dict[str, Any]:
        self.reports.append({"task_id": task_id, "status": status, "result": result})
        return {"acknowledged": True}

    def broadcast(self, swarm: str, message: Dict[str, Any]) -> None:
        self.broadcasts.append({"swarm": swarm, "message": message})


class InMemoryTaskStore:
    """
    进程内 task store（task_id 形如 `task-0001`）。

    说明：
    - 调用方指定的 task_id 已存在时拒绝（INVALID_PARAMS），不覆盖已有记录；
    - create 时若 `metadata.a2a_message` 是 A2A message，会被规范化后追加到 messages；
      格式不合法时忽略。
    """

    def __init__(self) -> None:
        self._tasks: Dict[str, Dict[str, Any]] = {}
        self._seq = 0

    def _next_task_id(self) -> str:
        while True:
            self._seq += 1
            task_id = f"task-{self._seq:04d}"
            if task_id not in self._tasks:
                return task_id

    async def create(self, params: Dict[str, Any]) -> Dict[str, Any]:
        task_id = params.get("task_id") or self._next_task_id()
        if task_id in self._tasks:
            raise CkpError.invalid_params(f"Task already exists: {task_id}")
        first = params.get("message")
        if first is None and params.get("messages"):
            first = params["messages"][0]
        metadata = dict(params.get("metadata") or {})
        record: Dict[str, Any] = {
            "task_id": task_id,
            "state": "submitted",
            "messages": [first] if first else [],
            "metadata": {"created_at": now_rfc3339(), **metadata},
        }
        a2a_message = metadata.get("a2a_message")
        if isinstance(a2a_message, dict):
            try:
                record["messages"].append(map_a2a_message_to_ckp_task_message(a2a_message))
            except (ValueError, TypeError, AttributeError):
                logger.debug("ignored malformed metadata.a2a_message (task_id=%s)", task_id, exc_info=True)
        self._tasks[task_id] = record
        return record

    async def get(self, task_id: str) -> Optional[Dict[str, Any]]:
        return self._tasks.get(task_id)

    async def list(self, filter: Dict[str, Any]) -> List[Dict[str, Any]]:
        records = list(self._tasks.values())
        if filter.get("state"):
            records = [t for t in records if t["state"] == filter["state"]]
        if filter.get("limit"):
            records = records[: filter["limit"]]
        return records

    async def cancel(self, task_id: str, reason: Optional[str] = None) -> Optional[Dict[str, Any]]:
        existing = self._tasks.get(task_id)
        if existing is None:
            return None
        canceled = {
            **existing,
            "state": "canceled",
            "metadata": {
                **(existing.get("metadata") or {}),
                "canceled_reason": reason or "unspecified",
                "canceled_at": now_rfc3339(),
            },
        }
        self._tasks[task_id] = canceled
        return canceled

    async def subscribe(self, task_id: str) -> Dict[str, Any]:
        existing = self._tasks.get(task_id)
        out: Dict[str, Any] = {"task_id": task_id, "subscribed": existing is not None}
        if existing is not None:
            out["state"] = existing["state"]
        return out

    def set_state(self, task_id: str, state: str) -> None:
        """测试/宿主侧推进 task 状态。"""

        self._tasks[task_id]["state"] = state
