"""
Agent 生命周期：状态机、一致性等级推导与心跳。

状态迁移（唯一合法路径）：
- INIT → STARTING → READY → STOPPING → STOPPED
- 任意非终态 → ERROR
- STOPPED 为终态

约束：
- 每个触发动作一个方法（begin_start / mark_ready / begin_stop / mark_stopped / fail），
  非法迁移抛 `IllegalTransitionError`，状态不回滚；
- 心跳只在 READY 时发出。
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional

from ckp_runtime.core.utils import now_rfc3339
from ckp_runtime.protocol.codes import HEARTBEAT
from ckp_runtime.protocol.messages import notification

logger = logging.getLogger(__name__)

DEFAULT_HEARTBEAT_INTERVAL_MS = 30000
MIN_HEARTBEAT_INTERVAL_MS = 100


class LifecycleState(str, Enum):
    INIT = "INIT"
    STARTING = "STARTING"
    READY = "READY"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"
    ERROR = "ERROR"


class ConformanceLevel(str, Enum):
    LEVEL_1 = "level-1"
    LEVEL_2 = "level-2"
    LEVEL_3 = "level-3"


_TRANSITIONS: Dict[LifecycleState, FrozenSet[LifecycleState]] = {
    LifecycleState.INIT: frozenset({LifecycleState.STARTING, LifecycleState.ERROR}),
    LifecycleState.STARTING: frozenset({LifecycleState.READY, LifecycleState.ERROR}),
    LifecycleState.READY: frozenset({LifecycleState.STOPPING, LifecycleState.ERROR}),
    LifecycleState.STOPPING: frozenset({LifecycleState.STOPPED, LifecycleState.ERROR}),
    LifecycleState.STOPPED: frozenset(),
    LifecycleState.ERROR: frozenset(),
}

TransitionListener = Callable[[LifecycleState, LifecycleState], None]


class IllegalTransitionError(RuntimeError):
    def __init__(self, current: LifecycleState, target: LifecycleState) -> None:
        super().__init__(f"illegal lifecycle transition: {current.value} -> {target.value}")
        self.current = current
        self.target = target


def derive_conformance_level(*, has_tools: bool, has_memory: bool, has_swarm: bool) -> ConformanceLevel:
    """
    由已配置能力推导一致性等级（纯函数）。

    规则：
    - memory 与 swarm 同时存在：level-3
    - 工具执行器存在（tools/policy/sandbox/quota 任一）：level-2
    - 否则：level-1
    """

    if has_memory and has_swarm:
        return ConformanceLevel.LEVEL_3
    if has_tools:
        return ConformanceLevel.LEVEL_2
    return ConformanceLevel.LEVEL_1


class LifecycleStateMachine:
    """单个 agent 实例持有的生命周期状态。"""

    def __init__(self) -> None:
        self._state = LifecycleState.INIT
        self._init_time: Optional[float] = None
        self._listeners: List[TransitionListener] = []

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def init_time(self) -> Optional[float]:
        """进入 STARTING 时的单调时钟读数（秒）；未初始化为 None。"""

        return self._init_time

    def uptime_ms(self) -> int:
        if self._init_time is None:
            return 0
        return max(0, int((time.monotonic() - self._init_time) * 1000))

    def add_listener(self, listener: TransitionListener) -> None:
        self._listeners.append(listener)

    def _transition(self, target: LifecycleState) -> None:
        current = self._state
        if target not in _TRANSITIONS[current]:
            raise IllegalTransitionError(current, target)
        self._state = target
        logger.debug("lifecycle %s -> %s", current.value, target.value)
        for listener in list(self._listeners):
            try:
                listener(current, target)
            except Exception:
                logger.debug("lifecycle listener failed", exc_info=True)

    def begin_start(self) -> None:
        self._transition(LifecycleState.STARTING)
        self._init_time = time.monotonic()

    def mark_ready(self) -> None:
        self._transition(LifecycleState.READY)

    def begin_stop(self) -> None:
        self._transition(LifecycleState.STOPPING)

    def mark_stopped(self) -> None:
        self._transition(LifecycleState.STOPPED)

    def fail(self) -> bool:
        """进入 ERROR；已处于终态时不迁移并返回 False。"""

        if self._state in (LifecycleState.STOPPED, LifecycleState.ERROR):
            return False
        self._transition(LifecycleState.ERROR)
        return True


def clamp_heartbeat_interval(interval_ms: int, min_interval_ms: int = MIN_HEARTBEAT_INTERVAL_MS) -> int:
    """返回实际心跳间隔；≤0 表示禁用（返回 0）。"""

    if interval_ms <= 0:
        return 0
    return max(int(interval_ms), max(1, int(min_interval_ms)))


class Heartbeat:
    """
    周期心跳（`claw.heartbeat` notification）。

    参数：
    - lifecycle：状态机（只在 READY 时发送，params 为 state / uptime_ms / timestamp）
    - send：帧发送函数
    - interval_ms / min_interval_ms：间隔与下限
    - on_send_error：发送失败回调（由 agent 决定是否进入 ERROR）
    """

    def __init__(
        self,
        *,
        lifecycle: LifecycleStateMachine,
        send: Callable[[dict], None],
        interval_ms: int = DEFAULT_HEARTBEAT_INTERVAL_MS,
        min_interval_ms: int = MIN_HEARTBEAT_INTERVAL_MS,
        on_send_error: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        self._lifecycle = lifecycle
        self._send = send
        self._interval_ms = clamp_heartbeat_interval(interval_ms, min_interval_ms)
        self._on_send_error = on_send_error
        self._task: Optional["asyncio.Task[None]"] = None

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """启动心跳；禁用或已运行时返回 False。"""

        if self._interval_ms <= 0 or self.running:
            return False
        self._task = asyncio.get_running_loop().create_task(self._run())
        return True

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_ms / 1000.0)
            if self._lifecycle.state is not LifecycleState.READY:
                continue
            params = {
                "state": self._lifecycle.state.value,
                "uptime_ms": self._lifecycle.uptime_ms(),
                "timestamp": now_rfc3339(),
            }
            try:
                self._send(notification(HEARTBEAT, params))
            except Exception as e:
                logger.warning("heartbeat send failed: %s", e)
                if self._on_send_error is not None:
                    self._on_send_error(e)
                return
