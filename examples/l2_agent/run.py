"""
L2 示例 agent：工具 + policy / sandbox / quota / approval 闸门。

工具：
- `echo`：回显 `arguments.text`
- `slow-tool`：5 秒后才返回，但声明 timeout_ms=100（用于演示执行超时）

闸门：
- policy 拒绝 `destructive-tool`；sandbox 拒绝 url 含 `169.254` 的调用；quota 拒绝 `expensive-tool`
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

from ckp_runtime import AgentOptions, ApprovalConfig, GateResult, ToolDefinition, create_agent
from ckp_runtime.runtime.agent import Agent
from ckp_runtime.transport import Transport


async def _echo(args: Dict[str, Any]) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": args.get("text")}]}


async def _slow(args: Dict[str, Any]) -> Dict[str, Any]:
    await asyncio.sleep(5)
    return {"content": [{"type": "text", "text": "done"}]}


class DenyDestructivePolicy:
    def evaluate(self, tool_name: str, context: Dict[str, Any]) -> GateResult:
        if tool_name == "destructive-tool":
            return GateResult.deny(code=-32011)
        return GateResult.allow()


class MetadataSandbox:
    def check(self, tool_name: str, arguments: Dict[str, Any]) -> GateResult:
        url = arguments.get("url")
        if isinstance(url, str) and "169.254" in url:
            return GateResult.deny(code=-32010)
        return GateResult.allow()


class ExpensiveToolQuota:
    def check(self, tool_name: str) -> GateResult:
        if tool_name == "expensive-tool":
            return GateResult.deny(code=-32021)
        return GateResult.allow()


def l2_options(name: str = "l2-test-agent") -> AgentOptions:
    """L2 配置（L3 示例在此基础上追加 memory / swarm）。"""

    return AgentOptions(
        name=name,
        version="1.0.0",
        tools={
            "echo": ToolDefinition(execute=_echo),
            "slow-tool": ToolDefinition(execute=_slow, timeout_ms=100),
        },
        policy=DenyDestructivePolicy(),
        sandbox=MetadataSandbox(),
        approval=ApprovalConfig(required=lambda _name: False, timeout_ms=30000),
        quota=ExpensiveToolQuota(),
    )


def build_agent(transport: Optional[Transport] = None) -> Agent:
    return create_agent(l2_options(), transport=transport)


def main() -> int:
    asyncio.run(build_agent().listen())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
