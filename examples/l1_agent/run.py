"""
L1 示例 agent：只有生命周期（initialize / initialized / status / shutdown）。

用法：
- `python examples/l1_agent/run.py`，然后在 stdin 逐行写入 JSON-RPC 帧。
"""

from __future__ import annotations

import asyncio
from typing import Optional

from ckp_runtime import AgentOptions, create_agent
from ckp_runtime.runtime.agent import Agent
from ckp_runtime.transport import Transport


def build_agent(transport: Optional[Transport] = None) -> Agent:
    return create_agent(AgentOptions(name="l1-test-agent", version="1.0.0"), transport=transport)


def main() -> int:
    asyncio.run(build_agent().listen())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
