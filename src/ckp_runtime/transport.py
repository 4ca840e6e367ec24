"""
传输层（行分隔 JSON 帧）。

约束：
- 核心只通过 `lines()` / `send()` / `close()` 访问传输，不直接接触流；
- `lines()` 交付完整的一行（不含换行），空行跳过；
- stdout 专用于协议帧（日志一律写 stderr）。
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, TextIO, runtime_checkable

logger = logging.getLogger(__name__)


def encode_frame(frame: Dict[str, Any]) -> str:
    """把帧编码为紧凑 JSON（不含换行）。"""

    return json.dumps(frame, ensure_ascii=False, separators=(",", ":"))


@runtime_checkable
class Transport(Protocol):
    """传输协作者接口。"""

    def lines(self) -> AsyncIterator[str]:
        ...

    def send(self, frame: Dict[str, Any]) -> None:
        ...

    def close(self) -> None:
        ...


class StdioTransport:
    """
    stdin/stdout 传输。

    说明：
    - 读 stdin 在线程中进行，不阻塞事件循环（慢 handler 与读入互不阻塞）；
    - 每帧写出后立即 flush。
    """

    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> None:
        self._stdin = stdin if stdin is not None else sys.stdin
        self._stdout = stdout if stdout is not None else sys.stdout
        self._closed = False

    async def lines(self) -> AsyncIterator[str]:
        while not self._closed:
            line = await asyncio.to_thread(self._stdin.readline)
            if line == "":
                return
            stripped = line.strip()
            if stripped:
                yield stripped

    def send(self, frame: Dict[str, Any]) -> None:
        if self._closed:
            logger.debug("dropping frame on closed transport")
            return
        self._stdout.write(encode_frame(frame) + "\n")
        self._stdout.flush()

    def close(self) -> None:
        self._closed = True


class MemoryTransport:
    """
    进程内传输（嵌入与测试）。

    用法：
    - `feed(line)` 注入一行输入；`end()` 表示 EOF；
    - 写出的帧经 JSON 往返后追加到 `sent`，也可用 `next_frame()` 按序等待。
    """

    def __init__(self) -> None:
        self._inbox: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
        self._outbox: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()
        self.sent: List[Dict[str, Any]] = []
        self.closed = False

    def feed(self, line: Any) -> None:
        """注入一行输入；非字符串按 JSON 编码。"""

        self._inbox.put_nowait(line if isinstance(line, str) else json.dumps(line))

    def end(self) -> None:
        self._inbox.put_nowait(None)

    async def lines(self) -> AsyncIterator[str]:
        while True:
            line = await self._inbox.get()
            if line is None:
                return
            stripped = line.strip()
            if stripped:
                yield stripped

    def send(self, frame: Dict[str, Any]) -> None:
        if self.closed:
            raise RuntimeError("transport closed")
        decoded = json.loads(encode_frame(frame))
        self.sent.append(decoded)
        self._outbox.put_nowait(decoded)

    async def next_frame(self, timeout: float = 2.0) -> Dict[str, Any]:
        """等待下一条写出的帧（超时抛 asyncio.TimeoutError）。"""

        return await asyncio.wait_for(self._outbox.get(), timeout=timeout)

    def close(self) -> None:
        self.closed = True
