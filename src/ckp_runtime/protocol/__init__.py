"""CKP 协议层（常量 + 帧构造 + 线上模型）。"""

from __future__ import annotations

from ckp_runtime.protocol.codes import PROTOCOL_VERSION, SUPPORTED_MAJOR, ErrorCode
from ckp_runtime.protocol.messages import error_response, notification, ok_response, salvage_id
from ckp_runtime.protocol.models import ContentBlock, TaskRecord, ToolCallResult, is_task_state

__all__ = [
    "PROTOCOL_VERSION",
    "SUPPORTED_MAJOR",
    "ContentBlock",
    "ErrorCode",
    "TaskRecord",
    "ToolCallResult",
    "error_response",
    "is_task_state",
    "notification",
    "ok_response",
    "salvage_id",
]
