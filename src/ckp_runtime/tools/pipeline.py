"""
工具执行管线（`claw.tool.call` / `claw.tool.approve` / `claw.tool.deny`）。

管线顺序（固定）：
1) quota → 2) policy → 3) sandbox → 4) 工具存在性 → 5) approval → 6) 执行（超时竞争）

约束：
- 三个闸门在存在性检查之前执行：未通过闸门的调用方无法借错误码探测工具是否存在；
- 执行期异常属于业务错误：返回成功响应，result 中 `isError=true`；
- 执行超时属于协议错误：`TOOL_EXECUTION_TIMEOUT`；
- 审批超时与执行超时是两段独立预算，错误码不同。
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Any, Dict, Mapping, Optional

from ckp_runtime.core.errors import ApprovalDeniedError, ApprovalTimeoutError, CkpError, ToolTimeoutError
from ckp_runtime.core.utils import error_message, maybe_await
from ckp_runtime.safety.approvals import ApprovalConfig, ApprovalQueue
from ckp_runtime.safety.gates import GateResult, PolicyEvaluator, QuotaChecker, SandboxChecker
from ckp_runtime.telemetry import NULL_TELEMETRY, Telemetry
from ckp_runtime.tools.protocol import ToolDefinition, error_result, normalize_tool_result

logger = logging.getLogger(__name__)

DEFAULT_TOOL_TIMEOUT_MS = 30000


def _object_param(params: Mapping[str, Any], key: str) -> Dict[str, Any]:
    raw = params.get(key)
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise CkpError.invalid_params(f"{key} must be an object")
    return dict(raw)


class ToolExecutor:
    """
    L2 工具执行器。

    参数：
    - tools：工具名 → ToolDefinition
    - quota / policy / sandbox：可选闸门（同步或异步）
    - approval：可选审批配置
    - default_timeout_ms：工具未声明 timeout_ms 时的默认执行超时
    - telemetry：telemetry 出口（fail-open）
    """

    def __init__(
        self,
        *,
        tools: Optional[Mapping[str, ToolDefinition]] = None,
        quota: Optional[QuotaChecker] = None,
        policy: Optional[PolicyEvaluator] = None,
        sandbox: Optional[SandboxChecker] = None,
        approval: Optional[ApprovalConfig] = None,
        default_timeout_ms: int = DEFAULT_TOOL_TIMEOUT_MS,
        telemetry: Optional[Telemetry] = None,
    ) -> None:
        self._tools: Dict[str, ToolDefinition] = dict(tools or {})
        self._quota = quota
        self._policy = policy
        self._sandbox = sandbox
        self._approval = approval
        self._default_timeout_ms = int(default_timeout_ms)
        self._telemetry = telemetry or NULL_TELEMETRY
        self.approvals = ApprovalQueue()

    async def handle_call(self, params: Dict[str, Any]) -> Any:
        """
        处理一次 `claw.tool.call`。

        返回：
        - 成功：工具结果（执行异常时为 isError=true 的结果）

        异常：
        - CkpError：参数错误、闸门拒绝、审批超时/拒绝、执行超时
        """

        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise CkpError.invalid_params("Missing tool name")
        arguments = _object_param(params, "arguments")
        context = _object_param(params, "context")

        started = time.monotonic()
        try:
            result = await self._run_pipeline(name, arguments, context)
        except CkpError as e:
            self._emit_outcome(name, started, code=e.code)
            raise
        is_error = isinstance(result, Mapping) and result.get("isError") is True
        self._emit_outcome(name, started, code=None, is_error=is_error)
        return result

    async def _run_pipeline(self, name: str, arguments: Dict[str, Any], context: Dict[str, Any]) -> Any:
        if self._quota is not None:
            gate = GateResult.coerce(await maybe_await(self._quota.check(name)))
            if not gate.allowed:
                raise CkpError.quota_exceeded(gate.message, code=gate.code)

        if self._policy is not None:
            gate = GateResult.coerce(await maybe_await(self._policy.evaluate(name, context)))
            if not gate.allowed:
                raise CkpError.policy_denied(gate.message, code=gate.code)

        if self._sandbox is not None:
            gate = GateResult.coerce(await maybe_await(self._sandbox.check(name, arguments)))
            if not gate.allowed:
                raise CkpError.sandbox_denied(gate.message, code=gate.code)

        tool = self._tools.get(name)
        if tool is None:
            raise CkpError.invalid_params(f"Unknown tool: {name}")

        if self._approval is not None and self._approval.required(name):
            request_id = context.get("request_id")
            if not isinstance(request_id, str) or not request_id:
                raise CkpError.invalid_params("Approval required: context.request_id must be a string")
            try:
                await self.approvals.wait_for_approval(request_id, self._approval.timeout_ms)
            except ApprovalTimeoutError:
                raise CkpError.approval_timeout() from None
            except ApprovalDeniedError as e:
                raise CkpError.approval_denied(e.reason) from None

        timeout_ms = tool.timeout_ms if tool.timeout_ms is not None else self._default_timeout_ms
        try:
            return await self._execute_with_timeout(name, tool, arguments, timeout_ms)
        except ToolTimeoutError as e:
            logger.debug("%s", e)
            raise CkpError.tool_timeout(name) from None

    async def _execute_with_timeout(
        self,
        name: str,
        tool: ToolDefinition,
        arguments: Dict[str, Any],
        timeout_ms: int,
    ) -> Any:
        """
        执行工具并与 deadline 竞争（先完成者胜出，显式取消落败方）。

        说明：
        - 同步 execute 在线程中运行；超时后线程无法被强制终止，其结果被丢弃。
        """

        exec_task = asyncio.ensure_future(self._invoke(tool, arguments))
        deadline = asyncio.ensure_future(asyncio.sleep(max(0, int(timeout_ms)) / 1000.0))
        try:
            done, _pending = await asyncio.wait({exec_task, deadline}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            deadline.cancel()
            if not exec_task.done():
                exec_task.cancel()

        if exec_task not in done:
            raise ToolTimeoutError(name, timeout_ms)

        try:
            value = exec_task.result()
        except Exception as e:
            # 业务错误：成功响应 + isError
            logger.debug("tool execution failed (tool=%s)", name, exc_info=True)
            return error_result(f"Error: {error_message(e)}")
        return normalize_tool_result(value)

    @staticmethod
    async def _invoke(tool: ToolDefinition, arguments: Dict[str, Any]) -> Any:
        fn = tool.execute
        if inspect.iscoroutinefunction(fn):
            return await fn(arguments)
        out = await asyncio.to_thread(fn, arguments)
        return await maybe_await(out)

    def handle_approve(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """处理 `claw.tool.approve`（未知 request_id 也确认收到）。"""

        request_id = params.get("request_id")
        self.approvals.approve(request_id if isinstance(request_id, str) else "")
        return {"acknowledged": True}

    def handle_deny(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """处理 `claw.tool.deny`（可选 reason 作为拒绝消息）。"""

        request_id = params.get("request_id")
        reason = params.get("reason")
        self.approvals.deny(
            request_id if isinstance(request_id, str) else "",
            reason if isinstance(reason, str) and reason else None,
        )
        return {"acknowledged": True}

    def _emit_outcome(self, name: str, started: float, *, code: Optional[int], is_error: bool = False) -> None:
        payload: Dict[str, Any] = {
            "tool": name,
            "duration_ms": int((time.monotonic() - started) * 1000),
            "outcome": "error" if code is not None else ("tool_error" if is_error else "ok"),
        }
        if code is not None:
            payload["code"] = int(code)
        self._telemetry.emit("tool_call", "claw.tool.call", payload)
