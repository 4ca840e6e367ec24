"""
审批队列（ApprovalQueue）：挂起待审批的工具调用，直到 approve / deny / 超时。

约束：
- 每个 request_id 至多一个 pending；三条出口（approve、deny、timeout）中恰好一条生效；
- 其余两条出口必须被取消：approve/deny 时取消定时器，超时后条目已移除，迟到的 approve/deny 为 no-op；
- approve/deny 对未知或已结束的 request_id 总是返回 True（确认收到），不报错；
- 同一 request_id 在 resolve 前再次等待：后写入者覆盖 map 条目（last-writer-wins），
  旧的等待者保留自己的定时器并按期超时，且其定时器不会删除新条目。
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ckp_runtime.core.errors import ApprovalDeniedError, ApprovalTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_APPROVAL_TIMEOUT_MS = 60000


@dataclass(frozen=True)
class ApprovalConfig:
    """
    审批配置。

    字段：
    - required：判定某个工具是否需要审批（返回 True 表示需要）
    - timeout_ms：等待审批的最长时间（毫秒）
    """

    required: Callable[[str], bool]
    timeout_ms: int = DEFAULT_APPROVAL_TIMEOUT_MS


@dataclass
class _Pending:
    future: "asyncio.Future[None]"
    timer: Optional[asyncio.TimerHandle] = None


class ApprovalQueue:
    """进程内审批队列（单事件循环，无需加锁）。"""

    def __init__(self) -> None:
        self._pending: Dict[str, _Pending] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, request_id: str) -> bool:
        return request_id in self._pending

    async def wait_for_approval(self, request_id: str, timeout_ms: int) -> None:
        """
        挂起直到审批结果到达。

        参数：
        - request_id：调用方提供的请求标识（approve/deny 以此定位）
        - timeout_ms：超时窗口（毫秒）

        返回：
        - approve：正常返回 None

        异常：
        - ApprovalDeniedError：被 deny（携带 reason）
        - ApprovalTimeoutError：超时未决
        """

        loop = asyncio.get_running_loop()
        entry = _Pending(future=loop.create_future())
        if request_id in self._pending:
            logger.debug("approval request overwritten (request_id=%s)", request_id)
        self._pending[request_id] = entry

        def _on_timeout() -> None:
            if self._pending.get(request_id) is entry:
                del self._pending[request_id]
            if not entry.future.done():
                entry.future.set_exception(ApprovalTimeoutError(request_id, timeout_ms))

        entry.timer = loop.call_later(max(0, int(timeout_ms)) / 1000.0, _on_timeout)
        try:
            await entry.future
        finally:
            # 等待方被取消时（例如 agent 关闭）也要回收定时器与条目
            entry.timer.cancel()
            if self._pending.get(request_id) is entry:
                del self._pending[request_id]

    def approve(self, request_id: str) -> bool:
        """放行一个 pending 审批；未知 request_id 为 no-op。"""

        entry = self._pending.pop(request_id, None)
        if entry is None:
            return True
        if entry.timer is not None:
            entry.timer.cancel()
        if not entry.future.done():
            entry.future.set_result(None)
        return True

    def deny(self, request_id: str, reason: Optional[str] = None) -> bool:
        """拒绝一个 pending 审批；未知 request_id 为 no-op。"""

        entry = self._pending.pop(request_id, None)
        if entry is None:
            return True
        if entry.timer is not None:
            entry.timer.cancel()
        if not entry.future.done():
            entry.future.set_exception(ApprovalDeniedError(request_id, reason))
        return True

    def clear(self, reason: str = "Agent closing") -> None:
        """以 deny 结束所有 pending（用于 agent 关闭，等待方仍能得到一个响应）。"""

        for request_id in list(self._pending):
            self.deny(request_id, reason)
