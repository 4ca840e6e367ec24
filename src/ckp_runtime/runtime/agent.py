"""
Agent：生命周期 handler + 方法注册表 + 传输循环。

说明：
- 方法注册表在构造时根据已提供的能力一次性构建，之后不可变；
- 一致性等级只在 initialize 时推导一次；
- shutdown 不退出进程：之后的请求按生命周期合法性规则拒绝。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from ckp_runtime.capabilities.memory import MemoryExecutor, MemoryHandler
from ckp_runtime.capabilities.swarm import SwarmExecutor, SwarmHandler
from ckp_runtime.capabilities.tasks import TaskExecutor, TaskHandler
from ckp_runtime.core.errors import CkpError
from ckp_runtime.protocol import codes
from ckp_runtime.protocol.codes import PROTOCOL_VERSION, SUPPORTED_MAJOR, SUPPORTED_VERSIONS
from ckp_runtime.runtime.dispatcher import MethodDispatcher, MethodSpec
from ckp_runtime.runtime.lifecycle import (
    DEFAULT_HEARTBEAT_INTERVAL_MS,
    MIN_HEARTBEAT_INTERVAL_MS,
    ConformanceLevel,
    Heartbeat,
    LifecycleState,
    LifecycleStateMachine,
    derive_conformance_level,
)
from ckp_runtime.safety.approvals import ApprovalConfig
from ckp_runtime.safety.gates import PolicyEvaluator, QuotaChecker, SandboxChecker
from ckp_runtime.telemetry import NULL_TELEMETRY, Telemetry
from ckp_runtime.tools.pipeline import DEFAULT_TOOL_TIMEOUT_MS, ToolExecutor
from ckp_runtime.tools.protocol import ToolDefinition
from ckp_runtime.transport import StdioTransport, Transport

logger = logging.getLogger(__name__)


@dataclass
class AgentOptions:
    """
    Agent 配置（可选字段的存在与否决定注册哪些方法）。

    字段：
    - name / version：agent 身份
    - heartbeat_interval_ms：心跳间隔；≤0 禁用
    - min_heartbeat_interval_ms：心跳间隔下限
    - default_tool_timeout_ms：工具未声明超时时的默认值
    - strict_initialize：为 True 时 initialize 还要求 clientInfo / manifest / capabilities
    - tools / policy / sandbox / approval / quota：L2
    - memory / swarm：L3
    - tasks：task interop（可选）
    - telemetry：telemetry 出口
    """

    name: str
    version: str
    heartbeat_interval_ms: int = DEFAULT_HEARTBEAT_INTERVAL_MS
    min_heartbeat_interval_ms: int = MIN_HEARTBEAT_INTERVAL_MS
    default_tool_timeout_ms: int = DEFAULT_TOOL_TIMEOUT_MS
    strict_initialize: bool = True
    tools: Optional[Dict[str, ToolDefinition]] = None
    policy: Optional[PolicyEvaluator] = None
    sandbox: Optional[SandboxChecker] = None
    approval: Optional[ApprovalConfig] = None
    quota: Optional[QuotaChecker] = None
    memory: Optional[MemoryHandler] = None
    swarm: Optional[SwarmHandler] = None
    tasks: Optional[TaskHandler] = None
    telemetry: Optional[Telemetry] = field(default=None, repr=False)

    @property
    def has_tool_layer(self) -> bool:
        return any(x is not None for x in (self.tools, self.policy, self.sandbox, self.quota))


def _major_matches(version: str) -> bool:
    """只比较主版本号；非数字主版本视为不匹配。"""

    major = version.split(".", 1)[0].strip()
    if not major.isdigit():
        return False
    return int(major) == SUPPORTED_MAJOR


class Agent:
    """CKP agent 运行时。"""

    def __init__(self, options: AgentOptions, *, transport: Optional[Transport] = None) -> None:
        self._options = options
        self._transport: Transport = transport if transport is not None else StdioTransport()
        self._telemetry = options.telemetry or NULL_TELEMETRY
        self._lifecycle = LifecycleStateMachine()
        self._lifecycle.add_listener(self._on_transition)
        self._conformance: Optional[ConformanceLevel] = None
        self._closed = False

        self._heartbeat = Heartbeat(
            lifecycle=self._lifecycle,
            send=self._transport.send,
            interval_ms=options.heartbeat_interval_ms,
            min_interval_ms=options.min_heartbeat_interval_ms,
            on_send_error=self._on_heartbeat_error,
        )

        self.tool_executor: Optional[ToolExecutor] = None
        self.memory_executor: Optional[MemoryExecutor] = None
        self.swarm_executor: Optional[SwarmExecutor] = None
        self.task_executor: Optional[TaskExecutor] = None

        registry: Dict[str, MethodSpec] = {
            codes.INITIALIZE: MethodSpec(self._handle_initialize, lifecycle=True),
            codes.INITIALIZED: MethodSpec(self._handle_initialized, notification_only=True, lifecycle=True),
            codes.STATUS: MethodSpec(self._handle_status, lifecycle=True),
            codes.SHUTDOWN: MethodSpec(self._handle_shutdown, lifecycle=True),
        }

        if options.has_tool_layer:
            tx = ToolExecutor(
                tools=options.tools,
                quota=options.quota,
                policy=options.policy,
                sandbox=options.sandbox,
                approval=options.approval,
                default_timeout_ms=options.default_tool_timeout_ms,
                telemetry=self._telemetry,
            )
            self.tool_executor = tx
            registry[codes.TOOL_CALL] = MethodSpec(tx.handle_call)
            registry[codes.TOOL_APPROVE] = MethodSpec(tx.handle_approve)
            registry[codes.TOOL_DENY] = MethodSpec(tx.handle_deny)

        if options.memory is not None:
            mx = MemoryExecutor(options.memory, telemetry=self._telemetry)
            self.memory_executor = mx
            registry[codes.MEMORY_STORE] = MethodSpec(mx.handle_store)
            registry[codes.MEMORY_QUERY] = MethodSpec(mx.handle_query)
            registry[codes.MEMORY_COMPACT] = MethodSpec(mx.handle_compact)

        if options.swarm is not None:
            sx = SwarmExecutor(options.swarm, telemetry=self._telemetry)
            self.swarm_executor = sx
            registry[codes.SWARM_DELEGATE] = MethodSpec(sx.handle_delegate)
            registry[codes.SWARM_DISCOVER] = MethodSpec(sx.handle_discover)
            registry[codes.SWARM_REPORT] = MethodSpec(sx.handle_report)
            registry[codes.SWARM_BROADCAST] = MethodSpec(sx.handle_broadcast, notification_only=True)

        if options.tasks is not None:
            kx = TaskExecutor(options.tasks, telemetry=self._telemetry)
            self.task_executor = kx
            registry[codes.TASK_CREATE] = MethodSpec(kx.handle_create)
            registry[codes.TASK_GET] = MethodSpec(kx.handle_get)
            registry[codes.TASK_LIST] = MethodSpec(kx.handle_list)
            registry[codes.TASK_CANCEL] = MethodSpec(kx.handle_cancel)
            registry[codes.TASK_SUBSCRIBE] = MethodSpec(kx.handle_subscribe)

        self.registry: Mapping[str, MethodSpec] = MappingProxyType(registry)
        self.dispatcher = MethodDispatcher(
            registry=self.registry,
            lifecycle=self._lifecycle,
            send=self._transport.send,
            telemetry=self._telemetry,
        )

    # ── 只读视图 ─────────────────────────────────────────────────────────

    @property
    def options(self) -> AgentOptions:
        return self._options

    @property
    def state(self) -> LifecycleState:
        return self._lifecycle.state

    @property
    def lifecycle(self) -> LifecycleStateMachine:
        return self._lifecycle

    @property
    def conformance_level(self) -> Optional[ConformanceLevel]:
        """initialize 成功后才有值。"""

        return self._conformance

    @property
    def heartbeat(self) -> Heartbeat:
        return self._heartbeat

    # ── 传输循环 ─────────────────────────────────────────────────────────

    async def handle(self, raw: str) -> Optional[Dict[str, Any]]:
        """同步处理一行输入并返回写出的帧（嵌入与测试用）。"""

        return await self.dispatcher.process(raw)

    async def listen(self) -> None:
        """
        消费传输输入直到 EOF，然后停止心跳、等待在途请求并关闭传输。

        说明：
        - 每行输入独立调度，不等待上一行处理完成。
        """

        try:
            async for line in self._transport.lines():
                self.dispatcher.handle_line(line)
        finally:
            await self.close()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._heartbeat.stop()
        if self.tool_executor is not None:
            self.tool_executor.approvals.clear()
        await self.dispatcher.drain()
        self._transport.close()

    # ── 生命周期 handler ─────────────────────────────────────────────────

    def _handle_initialize(self, params: Dict[str, Any]) -> Dict[str, Any]:
        version = params.get("protocolVersion")
        if not isinstance(version, str) or not version:
            raise CkpError.invalid_params("Missing required param: protocolVersion")
        if self._options.strict_initialize:
            for key in ("clientInfo", "manifest", "capabilities"):
                if not isinstance(params.get(key), dict):
                    raise CkpError.invalid_params(f"Missing required param: {key}")
        if not _major_matches(version):
            raise CkpError.version_not_supported(SUPPORTED_VERSIONS)

        self._lifecycle.begin_start()
        self._conformance = derive_conformance_level(
            has_tools=self.tool_executor is not None,
            has_memory=self.memory_executor is not None,
            has_swarm=self.swarm_executor is not None,
        )
        self._lifecycle.mark_ready()
        self._heartbeat.start()

        capabilities: Dict[str, Any] = {}
        if self.tool_executor is not None:
            capabilities["tools"] = {}
        if self.memory_executor is not None:
            capabilities["memory"] = {}
        if self.swarm_executor is not None:
            capabilities["swarm"] = {}
        if self.task_executor is not None:
            capabilities["tasks"] = {}

        return {
            "protocolVersion": PROTOCOL_VERSION,
            "agentInfo": {"name": self._options.name, "version": self._options.version},
            "conformanceLevel": self._conformance.value,
            "capabilities": capabilities,
        }

    def _handle_initialized(self, params: Dict[str, Any]) -> None:
        # 幂等：重复确认同样忽略
        return None

    def _handle_status(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {"state": self._lifecycle.state.value, "uptime_ms": self._lifecycle.uptime_ms()}

    async def _handle_shutdown(self, params: Dict[str, Any]) -> Dict[str, Any]:
        timeout_ms = params.get("timeout_ms")
        if timeout_ms is not None and (not isinstance(timeout_ms, int) or isinstance(timeout_ms, bool)):
            raise CkpError.invalid_params("timeout_ms must be an integer")
        reason = params.get("reason")

        if self._lifecycle.state is not LifecycleState.READY:
            # 重复 shutdown（或 ERROR 状态）：不迁移，只确保心跳已停
            self._heartbeat.stop()
            return {"drained": True}

        self._lifecycle.begin_stop()
        self._heartbeat.stop()
        logger.info("shutdown requested (reason=%s)", reason if isinstance(reason, str) else "-")
        drained = True
        if timeout_ms is not None and timeout_ms > 0:
            drained = await self.dispatcher.drain(timeout_ms)
        self._lifecycle.mark_stopped()
        return {"drained": drained}

    # ── 内部回调 ─────────────────────────────────────────────────────────

    def _on_transition(self, old: LifecycleState, new: LifecycleState) -> None:
        self._telemetry.emit("lifecycle", "state_change", {"from": old.value, "to": new.value})

    def _on_heartbeat_error(self, exc: BaseException) -> None:
        if self._lifecycle.fail():
            self._telemetry.emit("error", codes.HEARTBEAT, {"error": type(exc).__name__})


def create_agent(options: AgentOptions, *, transport: Optional[Transport] = None) -> Agent:
    """构造 Agent（默认使用 stdio 传输）。"""

    return Agent(options, transport=transport)
