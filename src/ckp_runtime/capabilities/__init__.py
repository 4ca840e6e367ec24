"""L3 / task interop 能力执行器与参考 handler。"""

from __future__ import annotations

from ckp_runtime.capabilities.in_memory import InMemoryMemoryStore, InMemoryTaskStore, StaticSwarmHandler
from ckp_runtime.capabilities.memory import MemoryExecutor, MemoryHandler
from ckp_runtime.capabilities.swarm import SwarmExecutor, SwarmHandler
from ckp_runtime.capabilities.tasks import TaskExecutor, TaskHandler

__all__ = [
    "InMemoryMemoryStore",
    "InMemoryTaskStore",
    "MemoryExecutor",
    "MemoryHandler",
    "StaticSwarmHandler",
    "SwarmExecutor",
    "SwarmHandler",
    "TaskExecutor",
    "TaskHandler",
]
