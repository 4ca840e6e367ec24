"""L2 工具层（工具定义 + 执行管线）。"""

from __future__ import annotations

from ckp_runtime.tools.pipeline import DEFAULT_TOOL_TIMEOUT_MS, ToolExecutor
from ckp_runtime.tools.protocol import ToolDefinition, error_result, normalize_tool_result, text_result

__all__ = [
    "DEFAULT_TOOL_TIMEOUT_MS",
    "ToolDefinition",
    "ToolExecutor",
    "error_result",
    "normalize_tool_result",
    "text_result",
]
