"""运行时核心（错误分类 + 共享工具函数）。"""

from __future__ import annotations

from ckp_runtime.core.errors import (
    ApprovalDeniedError,
    ApprovalTimeoutError,
    BootstrapError,
    CkpError,
    CkpRuntimeError,
    ToolTimeoutError,
)

__all__ = [
    "ApprovalDeniedError",
    "ApprovalTimeoutError",
    "BootstrapError",
    "CkpError",
    "CkpRuntimeError",
    "ToolTimeoutError",
]
