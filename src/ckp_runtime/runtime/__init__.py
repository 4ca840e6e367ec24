"""Agent 运行时（生命周期 + 分发器 + Agent）。"""

from __future__ import annotations

from ckp_runtime.runtime.agent import Agent, AgentOptions, create_agent
from ckp_runtime.runtime.dispatcher import MethodDispatcher, MethodSpec
from ckp_runtime.runtime.lifecycle import (
    ConformanceLevel,
    Heartbeat,
    LifecycleState,
    LifecycleStateMachine,
    derive_conformance_level,
)

__all__ = [
    "Agent",
    "AgentOptions",
    "ConformanceLevel",
    "Heartbeat",
    "LifecycleState",
    "LifecycleStateMachine",
    "MethodDispatcher",
    "MethodSpec",
    "create_agent",
    "derive_conformance_level",
]
