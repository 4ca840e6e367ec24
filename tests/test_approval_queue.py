from __future__ import annotations

import asyncio

import pytest

from ckp_runtime.core.errors import ApprovalDeniedError, ApprovalTimeoutError
from ckp_runtime.safety.approvals import ApprovalQueue


def test_approve_resolves_pending_wait() -> None:
    async def _run() -> None:
        q = ApprovalQueue()
        waiter = asyncio.ensure_future(q.wait_for_approval("r1", 5000))
        await asyncio.sleep(0)
        assert q.is_pending("r1")

        assert q.approve("r1") is True
        assert await waiter is None
        assert q.pending_count == 0

    asyncio.run(_run())


def test_deny_rejects_with_reason() -> None:
    async def _run() -> None:
        q = ApprovalQueue()
        waiter = asyncio.ensure_future(q.wait_for_approval("r1", 5000))
        await asyncio.sleep(0)

        assert q.deny("r1", "operator said no") is True
        with pytest.raises(ApprovalDeniedError) as ei:
            await waiter
        assert ei.value.reason == "operator said no"
        assert q.pending_count == 0

    asyncio.run(_run())


def test_timeout_rejects_and_removes_entry() -> None:
    async def _run() -> None:
        q = ApprovalQueue()
        with pytest.raises(ApprovalTimeoutError):
            await q.wait_for_approval("r1", 20)
        assert q.pending_count == 0
        # 窗口关闭后的 approve/deny 仍然确认收到
        assert q.approve("r1") is True
        assert q.deny("r1") is True

    asyncio.run(_run())


def test_unknown_request_id_is_acknowledged() -> None:
    q = ApprovalQueue()
    assert q.approve("never-seen") is True
    assert q.deny("never-seen", "whatever") is True
    assert q.pending_count == 0


def test_approve_after_resolution_is_noop() -> None:
    async def _run() -> None:
        q = ApprovalQueue()
        waiter = asyncio.ensure_future(q.wait_for_approval("r1", 5000))
        await asyncio.sleep(0)
        q.approve("r1")
        await waiter
        assert q.deny("r1") is True
        assert q.approve("r1") is True

    asyncio.run(_run())


def test_second_wait_overwrites_and_old_timer_keeps_new_entry() -> None:
    async def _run() -> None:
        q = ApprovalQueue()
        first = asyncio.ensure_future(q.wait_for_approval("r1", 20))
        await asyncio.sleep(0)
        second = asyncio.ensure_future(q.wait_for_approval("r1", 5000))
        await asyncio.sleep(0.08)

        # 旧等待者按自己的定时器超时
        assert first.done()
        with pytest.raises(ApprovalTimeoutError):
            first.result()
        # 新条目未被旧定时器删除
        assert q.is_pending("r1")

        q.approve("r1")
        assert await second is None
        assert q.pending_count == 0

    asyncio.run(_run())


def test_cancelled_waiter_cleans_up() -> None:
    async def _run() -> None:
        q = ApprovalQueue()
        waiter = asyncio.ensure_future(q.wait_for_approval("r1", 5000))
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert q.pending_count == 0

    asyncio.run(_run())


def test_clear_denies_all_pending() -> None:
    async def _run() -> None:
        q = ApprovalQueue()
        a = asyncio.ensure_future(q.wait_for_approval("a", 5000))
        b = asyncio.ensure_future(q.wait_for_approval("b", 5000))
        await asyncio.sleep(0)
        q.clear()
        for w in (a, b):
            with pytest.raises(ApprovalDeniedError):
                await w
        assert q.pending_count == 0

    asyncio.run(_run())
