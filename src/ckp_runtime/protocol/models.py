"""
CKP 线上数据模型（pydantic）。

说明：
- 这些模型描述“线上 JSON 的形状”，只在边界处用于校验/规范化；
- 多数模型允许额外字段（extra=allow），与 MCP 风格的 content block 保持前向兼容；
- `TaskRecord` 用于校验外部 task handler 的返回值（非法记录不得原样转发到线上）。
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr

TaskState = Literal[
    "submitted",
    "working",
    "input_required",
    "auth_required",
    "completed",
    "failed",
    "canceled",
    "rejected",
]

TASK_STATES = (
    "submitted",
    "working",
    "input_required",
    "auth_required",
    "completed",
    "failed",
    "canceled",
    "rejected",
)

PeerStatus = Literal["ready", "busy", "unavailable"]


def is_task_state(value: Any) -> bool:
    """判断是否为合法的 task state 字符串。"""

    return isinstance(value, str) and value in TASK_STATES


class ContentBlock(BaseModel):
    """内容块（MCP 兼容）：`text` / `image` / `resource`。"""

    model_config = ConfigDict(extra="allow")

    type: Literal["text", "image", "resource"]
    text: Optional[str] = None


class ToolCallResult(BaseModel):
    """`claw.tool.call` 的成功结果（业务错误也通过 isError=true 表达）。"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    content: List[ContentBlock] = Field(default_factory=list)
    is_error: Optional[bool] = Field(default=None, alias="isError")

    def to_wire(self) -> Dict[str, Any]:
        """导出为线上 JSON（使用 `isError` 别名，省略 None 字段）。"""

        return self.model_dump(by_alias=True, exclude_none=True)


class TaskRecord(BaseModel):
    """
    task 记录。

    约束：
    - `task_id` 必须为字符串（StrictStr，不接受数字隐式转换）；
    - `state` 必须为已知 task state。
    """

    model_config = ConfigDict(extra="allow")

    task_id: StrictStr
    state: TaskState
    messages: Optional[List[Dict[str, Any]]] = None
    artifacts: Optional[List[Dict[str, Any]]] = None
    metadata: Optional[Dict[str, Any]] = None


class MemoryEntry(BaseModel):
    """写入 memory store 的条目。"""

    model_config = ConfigDict(extra="allow")

    content: Union[StrictStr, Dict[str, Any]]
    key: Optional[StrictStr] = None
    metadata: Optional[Dict[str, Any]] = None


class SwarmPeer(BaseModel):
    """swarm 中可发现的对端。"""

    model_config = ConfigDict(extra="forbid")

    identity: str
    uri: str
    status: PeerStatus = "ready"
