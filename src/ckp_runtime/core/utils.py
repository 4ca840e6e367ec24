"""共享工具函数（消除跨模块重复）。"""
from __future__ import annotations

import inspect
from datetime import datetime, timezone
from typing import Any


def now_rfc3339() -> str:
    """返回当前 UTC 时间的 RFC3339 字符串（以 Z 结尾）。"""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


async def maybe_await(value: Any) -> Any:
    """
    兼容同步/异步的可插拔 handler：返回值若为 awaitable 则 await，否则原样返回。
    """
    if inspect.isawaitable(value):
        return await value
    return value


def error_message(exc: BaseException) -> str:
    """取异常的可读消息；空消息时回退到异常类型名。"""
    msg = str(exc)
    return msg if msg else type(exc).__name__
