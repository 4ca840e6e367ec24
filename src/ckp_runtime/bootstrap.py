"""
Bootstrap：由校验后的 `RuntimeConfig` 构造 `AgentOptions`。

设计目标：
- 保持 SDK 核心无隐式 I/O：Agent 本身不读配置文件，只接受 `AgentOptions`；
- CLI 与嵌入方共用同一条“配置 → 运行时对象”的装配路径。
"""

from __future__ import annotations

import importlib
import logging
from typing import Any, Dict, Optional

from ckp_runtime.capabilities.in_memory import InMemoryMemoryStore, InMemoryTaskStore, StaticSwarmHandler
from ckp_runtime.config.loader import RuntimeConfig
from ckp_runtime.core.errors import BootstrapError
from ckp_runtime.runtime.agent import AgentOptions
from ckp_runtime.safety.approvals import ApprovalConfig
from ckp_runtime.safety.rules import CallQuotaChecker, PatternSandboxChecker, RulePolicyEvaluator
from ckp_runtime.telemetry import LoggingTelemetryHandler, Telemetry
from ckp_runtime.tools.protocol import ToolDefinition

logger = logging.getLogger(__name__)


def import_entrypoint(spec: str) -> Any:
    """
    导入 `module.path:attr`（attr 可含点号，逐级 getattr）。

    异常：
    - BootstrapError：格式错误、模块不存在或属性不存在
    """

    module_name, sep, attr_path = str(spec).partition(":")
    if not sep or not module_name or not attr_path:
        raise BootstrapError(
            code="ENTRYPOINT_INVALID",
            message="Entrypoint must look like 'module.path:attr'.",
            details={"entrypoint": spec},
        )
    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as exc:
        raise BootstrapError(
            code="ENTRYPOINT_IMPORT_FAILED",
            message="Entrypoint module could not be imported.",
            details={"entrypoint": spec, "reason": str(exc)},
        ) from exc
    for part in attr_path.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as exc:
            raise BootstrapError(
                code="ENTRYPOINT_ATTR_NOT_FOUND",
                message="Entrypoint attribute not found.",
                details={"entrypoint": spec, "attr": part},
            ) from exc
    return obj


def _build_tools(cfg: RuntimeConfig) -> Dict[str, ToolDefinition]:
    tools: Dict[str, ToolDefinition] = {}
    for entry in cfg.tools.entries:
        target = import_entrypoint(entry.entrypoint)
        if isinstance(target, ToolDefinition):
            # 配置中的 timeout/description 覆盖定义自带值
            tools[entry.name] = ToolDefinition(
                execute=target.execute,
                timeout_ms=entry.timeout_ms if entry.timeout_ms is not None else target.timeout_ms,
                description=entry.description if entry.description is not None else target.description,
            )
            continue
        if not callable(target):
            raise BootstrapError(
                code="TOOL_NOT_CALLABLE",
                message="Tool entrypoint must resolve to a callable or ToolDefinition.",
                details={"tool": entry.name, "entrypoint": entry.entrypoint},
            )
        tools[entry.name] = ToolDefinition(execute=target, timeout_ms=entry.timeout_ms, description=entry.description)
    return tools


def _build_approval(cfg: RuntimeConfig) -> Optional[ApprovalConfig]:
    approval = cfg.safety.approval
    if approval.mode == "never":
        return None
    if approval.mode == "always":
        return ApprovalConfig(required=lambda _name: True, timeout_ms=approval.timeout_ms)
    names = frozenset(approval.tools)
    return ApprovalConfig(required=lambda name: name in names, timeout_ms=approval.timeout_ms)


def build_telemetry(cfg: RuntimeConfig) -> Optional[Telemetry]:
    t = cfg.telemetry
    if not t.enabled or t.sink == "none":
        return None
    return Telemetry([LoggingTelemetryHandler()], enabled_types=list(t.events))


def build_agent_options(cfg: RuntimeConfig) -> AgentOptions:
    """
    装配 AgentOptions。

    说明：
    - 只有 `enabled` 的闸门/能力才会被接入（决定注册哪些方法与一致性等级）；
    - memory / swarm / tasks 使用进程内参考实现。
    """

    safety = cfg.safety
    tools = _build_tools(cfg)
    options = AgentOptions(
        name=cfg.agent.name,
        version=cfg.agent.version,
        heartbeat_interval_ms=cfg.lifecycle.heartbeat_interval_ms,
        min_heartbeat_interval_ms=cfg.lifecycle.min_heartbeat_interval_ms,
        default_tool_timeout_ms=cfg.tools.default_timeout_ms,
        strict_initialize=cfg.lifecycle.strict_initialize,
        tools=tools or None,
        policy=(
            RulePolicyEvaluator(tool_allowlist=safety.policy.tool_allowlist, tool_denylist=safety.policy.tool_denylist)
            if safety.policy.enabled
            else None
        ),
        sandbox=(
            PatternSandboxChecker(
                blocked_patterns=safety.sandbox.blocked_patterns,
                blocked_hosts=safety.sandbox.blocked_hosts,
            )
            if safety.sandbox.enabled
            else None
        ),
        quota=(
            CallQuotaChecker(default_max_calls=safety.quota.default_max_calls, tool_limits=safety.quota.tool_limits)
            if safety.quota.enabled
            else None
        ),
        approval=_build_approval(cfg),
        memory=InMemoryMemoryStore(max_entries=cfg.memory.max_entries) if cfg.memory.enabled else None,
        swarm=StaticSwarmHandler([p.model_dump() for p in cfg.swarm.peers]) if cfg.swarm.enabled else None,
        tasks=InMemoryTaskStore() if cfg.tasks.enabled else None,
        telemetry=build_telemetry(cfg),
    )
    logger.debug("agent options built (name=%s, tools=%s)", options.name, sorted(tools))
    return options
