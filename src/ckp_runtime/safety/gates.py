"""
安全闸门（quota / policy / sandbox）的结果契约与接口。

说明：
- 三类闸门都返回 `GateResult`；实现可以是同步或异步（返回 awaitable）；
- 闸门按 quota → policy → sandbox 的顺序执行，且在“工具是否存在”检查之前执行，
  因此闸门实现不得依赖工具注册表（见 `tools.pipeline`）。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class GateResult:
    """
    闸门判定结果（不可变）。

    字段：
    - allowed：是否放行
    - code：可选错误码（拒绝时覆盖闸门默认错误码）
    - message：可选说明（拒绝时作为错误消息）
    """

    allowed: bool
    code: Optional[int] = None
    message: Optional[str] = None

    @classmethod
    def allow(cls) -> "GateResult":
        return cls(allowed=True)

    @classmethod
    def deny(cls, message: Optional[str] = None, *, code: Optional[int] = None) -> "GateResult":
        return cls(allowed=False, code=code, message=message)

    @classmethod
    def coerce(cls, value: Any) -> "GateResult":
        """
        把闸门实现的返回值规范化为 `GateResult`。

        接受：
        - GateResult：原样返回
        - Mapping：读取 `allowed/code/message`
        - bool：仅表达放行/拒绝

        约束：
        - 其它类型（包括 None）一律视为拒绝（fail-closed）。
        """

        if isinstance(value, GateResult):
            return value
        if isinstance(value, bool):
            return cls(allowed=value)
        if isinstance(value, Mapping):
            code = value.get("code")
            message = value.get("message")
            return cls(
                allowed=value.get("allowed") is True,
                code=int(code) if isinstance(code, int) and not isinstance(code, bool) else None,
                message=str(message) if message is not None else None,
            )
        return cls(allowed=False, message="Gate returned an invalid result")


@runtime_checkable
class QuotaChecker(Protocol):
    """配额闸门：按工具名检查调用预算。"""

    def check(self, tool_name: str) -> Any:
        """返回 GateResult（或其 awaitable）。"""

        ...


@runtime_checkable
class PolicyEvaluator(Protocol):
    """策略闸门：结合调用上下文判定工具是否允许。"""

    def evaluate(self, tool_name: str, context: Dict[str, Any]) -> Any:
        """返回 GateResult（或其 awaitable）。"""

        ...


@runtime_checkable
class SandboxChecker(Protocol):
    """沙箱闸门：检查工具参数是否越界（路径、网络目标等）。"""

    def check(self, tool_name: str, arguments: Dict[str, Any]) -> Any:
        """返回 GateResult（或其 awaitable）。"""

        ...
