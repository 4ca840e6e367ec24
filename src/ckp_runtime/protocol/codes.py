"""
CKP 协议常量：版本、方法名与错误码。

说明：
- 版本协商只比较主版本号（major），见 `runtime.lifecycle`；
- 错误码覆盖 JSON-RPC 2.0 标准码与 CKP 扩展码。
"""

from __future__ import annotations

from enum import IntEnum

PROTOCOL_VERSION = "0.2.0"
SUPPORTED_MAJOR = 0
SUPPORTED_VERSIONS = (PROTOCOL_VERSION,)

JSONRPC_VERSION = "2.0"


class ErrorCode(IntEnum):
    """CKP/JSON-RPC 错误码。"""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    PROTOCOL_VERSION_NOT_SUPPORTED = -32001
    SANDBOX_DENIED = -32010
    POLICY_DENIED = -32011
    APPROVAL_TIMEOUT = -32012
    APPROVAL_DENIED = -32013
    TOOL_EXECUTION_TIMEOUT = -32014
    PROVIDER_QUOTA_EXCEEDED = -32021


# L1：生命周期
INITIALIZE = "claw.initialize"
INITIALIZED = "claw.initialized"
STATUS = "claw.status"
SHUTDOWN = "claw.shutdown"
HEARTBEAT = "claw.heartbeat"

# L2：工具
TOOL_CALL = "claw.tool.call"
TOOL_APPROVE = "claw.tool.approve"
TOOL_DENY = "claw.tool.deny"

# L3：memory / swarm
MEMORY_STORE = "claw.memory.store"
MEMORY_QUERY = "claw.memory.query"
MEMORY_COMPACT = "claw.memory.compact"
SWARM_DELEGATE = "claw.swarm.delegate"
SWARM_DISCOVER = "claw.swarm.discover"
SWARM_REPORT = "claw.swarm.report"
SWARM_BROADCAST = "claw.swarm.broadcast"

# 可选：task interop（A2A）
TASK_CREATE = "claw.task.create"
TASK_GET = "claw.task.get"
TASK_LIST = "claw.task.list"
TASK_CANCEL = "claw.task.cancel"
TASK_SUBSCRIBE = "claw.task.subscribe"
