"""
工具定义与结果辅助函数。

说明：
- `execute(arguments)` 可以是协程函数，也可以是普通函数（普通函数会在线程中执行，
  以便仍能与超时竞争）；
- 返回值规范化为 `{"content": [...], "isError"?: bool}`。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import BaseModel

from ckp_runtime.protocol.models import ContentBlock, ToolCallResult

ToolExecute = Callable[[Dict[str, Any]], Any]


@dataclass(frozen=True)
class ToolDefinition:
    """
    工具定义。

    字段：
    - execute：工具执行函数（入参为 arguments dict）
    - timeout_ms：可选超时（毫秒）；为空时使用 agent 默认值
    - description：可选描述
    """

    execute: ToolExecute
    timeout_ms: Optional[int] = None
    description: Optional[str] = None


def text_result(text: str) -> Dict[str, Any]:
    return ToolCallResult(content=[ContentBlock(type="text", text=str(text))]).to_wire()


def error_result(text: str) -> Dict[str, Any]:
    return ToolCallResult(content=[ContentBlock(type="text", text=str(text))], is_error=True).to_wire()


def normalize_tool_result(value: Any) -> Any:
    """
    规范化工具返回值。

    规则：
    - str：包装为单个 text content block
    - None：空 content
    - pydantic 模型：`ToolCallResult` 走 `to_wire()`，其它模型走 `model_dump()`
    - 其它（dict 等）：原样透传
    """

    if isinstance(value, str):
        return text_result(value)
    if value is None:
        return {"content": []}
    if isinstance(value, ToolCallResult):
        return value.to_wire()
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_none=True)
    if isinstance(value, Mapping):
        return dict(value)
    return value
