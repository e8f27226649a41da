"""Routing of process output to the terminal."""

import asyncio
import codecs
from collections import deque
from collections.abc import AsyncIterator

from workbench_core.observability import get_logger
from workbench_core.protocols import TerminalSink

logger = get_logger(__name__)

# ANSI styles for status lines
BOLD_BLUE = "\x1b[1;34m"
BOLD_GREEN = "\x1b[1;32m"
BOLD_RED = "\x1b[1;31m"
BOLD_YELLOW = "\x1b[1;33m"
RESET = "\x1b[0m"


class OutputRouter:
    """Forwards process output chunks to a terminal sink, in arrival order.

    There is no buffering beyond FIFO order and no backpressure: a slow sink
    never pauses the process.
    """

    def __init__(self, sink: TerminalSink | None = None) -> None:
        self._sink = sink
        self._tasks: set[asyncio.Task[int]] = set()

    @property
    def sink(self) -> TerminalSink | None:
        return self._sink

    @sink.setter
    def sink(self, sink: TerminalSink | None) -> None:
        self._sink = sink

    def attach(self, stream: AsyncIterator[str | bytes], label: str = "process") -> asyncio.Task[int]:
        """Start pumping a process's output to the sink.

        Returns:
            Task resolving to the number of chunks forwarded once the stream ends
        """
        task = asyncio.create_task(self._pump(stream, label))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _pump(self, stream: AsyncIterator[str | bytes], label: str) -> int:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        count = 0
        async for chunk in stream:
            text = decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
            if text:
                self.write(text)
            count += 1
        tail = decoder.decode(b"", final=True)
        if tail:
            self.write(tail)
        logger.debug("Output stream ended", context={"process": label, "chunks": count})
        return count

    def write(self, data: str) -> None:
        """Write raw text to the sink."""
        if self._sink is None:
            return
        try:
            self._sink.write(data)
        except Exception as e:
            logger.warning("Terminal sink rejected output", error=e)

    def write_line(self, text: str = "", style: str | None = None) -> None:
        """Write a status line, optionally styled."""
        if style:
            text = f"{style}{text}{RESET}"
        self.write(text + "\r\n")

    async def wait_idle(self) -> None:
        """Wait for every attached stream to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Cancel all pumps."""
        for task in list(self._tasks):
            task.cancel()


class BufferedTerminal:
    """Terminal sink that keeps recent output and fans it out to subscribers.

    Backs the HTTP terminal stream: a new subscriber first receives the
    retained history, then live chunks.
    """

    def __init__(self, max_chunks: int = 2000) -> None:
        self._history: deque[str] = deque(maxlen=max_chunks)
        self._subscribers: set[asyncio.Queue[str]] = set()

    def write(self, data: str) -> None:
        self._history.append(data)
        for queue in list(self._subscribers):
            queue.put_nowait(data)

    @property
    def history(self) -> list[str]:
        return list(self._history)

    def text(self) -> str:
        """All retained output joined together."""
        return "".join(self._history)

    def subscribe(self) -> asyncio.Queue[str]:
        queue: asyncio.Queue[str] = asyncio.Queue()
        for chunk in self._history:
            queue.put_nowait(chunk)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[str]) -> None:
        self._subscribers.discard(queue)

    def clear(self) -> None:
        self._history.clear()
