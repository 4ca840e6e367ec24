"""
运行时错误分类（异常类型）。

说明：
- handler 通过抛出 `CkpError` 表达“协议级错误”，由 dispatcher 统一映射为 JSON-RPC error 对象；
- 工具执行层面的业务失败不走异常通道（返回 isError=true 的成功结果），见 `tools.pipeline`；
- 审批/超时相关异常仅用于内部控制流，最终仍会被转换为对应错误码。
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from ckp_runtime.protocol.codes import ErrorCode


class CkpRuntimeError(Exception):
    """运行时内部错误基类（不建议直接抛出）。"""


class CkpError(CkpRuntimeError):
    """协议级结构化错误（`code/message/data`）。"""

    def __init__(self, code: int, message: str, *, data: Optional[Any] = None) -> None:
        """创建协议错误。

        参数：
        - `code`：JSON-RPC/CKP 错误码
        - `message`：英文错误消息（原样写到线上）
        - `data`：可选结构化补充信息
        """

        super().__init__(message)
        self.code = int(code)
        self.message = str(message)
        self.data = data

    def __str__(self) -> str:
        """返回用于日志的字符串表示。"""

        return f"{self.code}: {self.message}"

    def to_error_object(self) -> Dict[str, Any]:
        """转换为 JSON-RPC error 对象。"""

        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error

    # ── 便捷构造 ─────────────────────────────────────────────────────────

    @classmethod
    def invalid_params(cls, message: str = "Invalid params") -> "CkpError":
        return cls(ErrorCode.INVALID_PARAMS, message)

    @classmethod
    def internal(cls, message: str) -> "CkpError":
        return cls(ErrorCode.INTERNAL_ERROR, message)

    @classmethod
    def version_not_supported(cls, supported: Any) -> "CkpError":
        return cls(
            ErrorCode.PROTOCOL_VERSION_NOT_SUPPORTED,
            "Protocol version not supported",
            data={"supported": list(supported)},
        )

    # gate 拒绝：允许 GateResult 覆盖 code 与 message
    @classmethod
    def sandbox_denied(cls, message: Optional[str] = None, *, code: Optional[int] = None) -> "CkpError":
        return cls(code or ErrorCode.SANDBOX_DENIED, message or "Sandbox denied")

    @classmethod
    def policy_denied(cls, message: Optional[str] = None, *, code: Optional[int] = None) -> "CkpError":
        return cls(code or ErrorCode.POLICY_DENIED, message or "Policy denied")

    @classmethod
    def quota_exceeded(cls, message: Optional[str] = None, *, code: Optional[int] = None) -> "CkpError":
        return cls(code or ErrorCode.PROVIDER_QUOTA_EXCEEDED, message or "Provider quota exceeded")

    @classmethod
    def approval_timeout(cls) -> "CkpError":
        return cls(ErrorCode.APPROVAL_TIMEOUT, "Approval timeout")

    @classmethod
    def approval_denied(cls, reason: Optional[str] = None) -> "CkpError":
        return cls(ErrorCode.APPROVAL_DENIED, reason or "Approval denied")

    @classmethod
    def tool_timeout(cls, tool_name: Optional[str] = None) -> "CkpError":
        return cls(
            ErrorCode.TOOL_EXECUTION_TIMEOUT,
            f"Tool execution timeout: {tool_name}" if tool_name else "Tool execution timeout",
        )


class BootstrapError(CkpRuntimeError):
    """启动期结构化错误（英文 `code/message/details`；配置 → AgentOptions 失败时抛出）。"""

    def __init__(self, *, code: str, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details: Dict[str, Any] = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": dict(self.details)}


class ApprovalTimeoutError(CkpRuntimeError):
    """审批等待超时（未在窗口内收到 approve/deny）。"""

    def __init__(self, request_id: str, timeout_ms: int) -> None:
        super().__init__(f"approval for {request_id!r} timed out after {timeout_ms}ms")
        self.request_id = request_id
        self.timeout_ms = timeout_ms


class ApprovalDeniedError(CkpRuntimeError):
    """审批被显式拒绝。"""

    def __init__(self, request_id: str, reason: Optional[str] = None) -> None:
        super().__init__(reason or "denied")
        self.request_id = request_id
        self.reason = reason


class ToolTimeoutError(CkpRuntimeError):
    """工具执行超过 timeout_ms。"""

    def __init__(self, tool_name: str, timeout_ms: int) -> None:
        super().__init__(f'Tool "{tool_name}" timed out after {timeout_ms}ms')
        self.tool_name = tool_name
        self.timeout_ms = timeout_ms
