"""capability executors 的共享辅助（internal）。"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

from ckp_runtime.core.errors import CkpError
from ckp_runtime.core.utils import error_message, maybe_await

logger = logging.getLogger(__name__)


async def call_handler(label: str, fn: Callable[..., Any], *args: Any) -> Any:
    """
    调用外部 handler，并把任意异常映射为 `-32603 "<label> error: <message>"`。

    约束：
    - handler 主动抛出的 CkpError 原样透传（保留其错误码）；
    - CancelledError 不拦截。
    """

    try:
        return await maybe_await(fn(*args))
    except CkpError:
        raise
    except Exception as e:
        logger.debug("%s handler failed", label, exc_info=True)
        raise CkpError.internal(f"{label} error: {error_message(e)}") from e


def require_str(params: Mapping[str, Any], key: str, message: Optional[str] = None) -> str:
    """读取必填的非空字符串参数；缺失或类型不对时抛出 INVALID_PARAMS。"""

    value = params.get(key)
    if not isinstance(value, str) or not value:
        raise CkpError.invalid_params(message or f"Missing {key}")
    return value


def optional_str(params: Mapping[str, Any], key: str) -> Optional[str]:
    value = params.get(key)
    return value if isinstance(value, str) and value else None


def optional_object(params: Mapping[str, Any], key: str) -> Optional[dict]:
    value = params.get(key)
    return dict(value) if isinstance(value, Mapping) else None
