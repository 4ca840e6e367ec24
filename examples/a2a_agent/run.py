"""
A2A interop 示例 agent：只开启 task 能力（`claw.task.*`）。

说明：
- task_id 形如 `task-0001`；
- create 时 `metadata.a2a_message` 若为 A2A message，会被规范化为 CKP task message 追加到 messages。
"""

from __future__ import annotations

import asyncio
from typing import Optional

from ckp_runtime import AgentOptions, create_agent
from ckp_runtime.capabilities import InMemoryTaskStore
from ckp_runtime.runtime.agent import Agent
from ckp_runtime.transport import Transport


def build_agent(transport: Optional[Transport] = None) -> Agent:
    return create_agent(
        AgentOptions(name="test-a2a-agent", version="1.0.0", tasks=InMemoryTaskStore()),
        transport=transport,
    )


def main() -> int:
    asyncio.run(build_agent().listen())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
