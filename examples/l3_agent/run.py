"""
L3 示例 agent：L2 全部能力 + memory + swarm。

说明：
- memory 使用进程内 store（compact 保留最新 100 条）；
- swarm 固定一个 peer（`peer-1`），delegate / report 只做确认。
"""

from __future__ import annotations

import asyncio
import importlib.util
import sys
from pathlib import Path
from typing import Optional

from ckp_runtime.capabilities import InMemoryMemoryStore, StaticSwarmHandler
from ckp_runtime.runtime.agent import Agent, create_agent
from ckp_runtime.transport import Transport


def _load_l2_module():
    """按路径加载同级的 l2 示例（examples 目录不是 package）。"""

    path = Path(__file__).resolve().parent.parent / "l2_agent" / "run.py"
    spec = importlib.util.spec_from_file_location("ckp_example_l2_agent", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"cannot load {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    spec.loader.exec_module(module)
    return module


def build_agent(transport: Optional[Transport] = None) -> Agent:
    options = _load_l2_module().l2_options(name="l3-test-agent")
    options.memory = InMemoryMemoryStore(max_entries=100)
    options.swarm = StaticSwarmHandler(
        [{"identity": "peer-1", "uri": "claw://local/identity/peer-1", "status": "ready"}]
    )
    return create_agent(options, transport=transport)


def main() -> int:
    asyncio.run(build_agent().listen())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
