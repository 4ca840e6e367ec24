"""
ckp_runtime：Claw Kernel Protocol（CKP）agent 运行时 SDK。

入口：
- `create_agent(AgentOptions(...))` 构造 agent，`await agent.listen()` 在 stdio 上服务；
- L2 工具、L3 memory/swarm、task interop 通过 `AgentOptions` 的可选字段接入。
"""

from __future__ import annotations

from ckp_runtime.core.errors import CkpError
from ckp_runtime.protocol.codes import PROTOCOL_VERSION, ErrorCode
from ckp_runtime.runtime.agent import Agent, AgentOptions, create_agent
from ckp_runtime.runtime.lifecycle import ConformanceLevel, LifecycleState
from ckp_runtime.safety.approvals import ApprovalConfig
from ckp_runtime.safety.gates import GateResult
from ckp_runtime.telemetry import Telemetry, TelemetryEvent
from ckp_runtime.tools.protocol import ToolDefinition
from ckp_runtime.transport import MemoryTransport, StdioTransport

__version__ = "0.2.0"

__all__ = [
    "PROTOCOL_VERSION",
    "Agent",
    "AgentOptions",
    "ApprovalConfig",
    "CkpError",
    "ConformanceLevel",
    "ErrorCode",
    "GateResult",
    "LifecycleState",
    "MemoryTransport",
    "StdioTransport",
    "Telemetry",
    "TelemetryEvent",
    "ToolDefinition",
    "__version__",
    "create_agent",
]
