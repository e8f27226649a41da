"""Tests for output routing and the buffered terminal."""

import asyncio
from collections.abc import AsyncIterator

import pytest

from workbench_core.output import BOLD_GREEN, RESET, BufferedTerminal, OutputRouter


async def _stream(*chunks: str | bytes) -> AsyncIterator[str | bytes]:
    for chunk in chunks:
        yield chunk
        await asyncio.sleep(0)


class TestOutputRouter:
    """Tests for OutputRouter."""

    @pytest.mark.asyncio
    async def test_forwards_chunks_in_order(self, terminal) -> None:
        """Chunks reach the sink in arrival order."""
        router = OutputRouter(terminal)

        count = await router.attach(_stream("a", "b", "c"))

        assert count == 3
        assert terminal.chunks == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_decodes_split_utf8(self, terminal) -> None:
        """A multi-byte character split across chunks is decoded whole."""
        router = OutputRouter(terminal)
        data = "✓ ready".encode("utf-8")

        await router.attach(_stream(data[:1], data[1:]))

        assert terminal.text == "✓ ready"

    @pytest.mark.asyncio
    async def test_no_sink_drops_output(self) -> None:
        router = OutputRouter()
        assert await router.attach(_stream("x")) == 1

    @pytest.mark.asyncio
    async def test_sink_errors_do_not_stop_pump(self) -> None:
        """A failing sink is logged and the stream still drains."""

        class FlakySink:
            def __init__(self) -> None:
                self.chunks: list[str] = []

            def write(self, data: str) -> None:
                if data == "bad":
                    raise RuntimeError("terminal gone")
                self.chunks.append(data)

        sink = FlakySink()
        router = OutputRouter(sink)

        await router.attach(_stream("ok", "bad", "after"))

        assert sink.chunks == ["ok", "after"]

    @pytest.mark.asyncio
    async def test_wait_idle(self, terminal) -> None:
        router = OutputRouter(terminal)
        router.attach(_stream("one", "two"))
        router.attach(_stream("three"))

        await router.wait_idle()

        assert sorted(terminal.chunks) == ["one", "three", "two"]

    def test_write_line_styles(self, terminal) -> None:
        """Styled lines are wrapped in ANSI codes and end in CRLF."""
        router = OutputRouter(terminal)

        router.write_line("✓ Done", BOLD_GREEN)
        router.write_line()

        assert terminal.chunks == [f"{BOLD_GREEN}✓ Done{RESET}\r\n", "\r\n"]

    def test_sink_can_be_swapped(self, terminal) -> None:
        router = OutputRouter()
        router.write("lost")
        router.sink = terminal
        router.write("kept")
        assert terminal.chunks == ["kept"]


class TestBufferedTerminal:
    """Tests for BufferedTerminal."""

    def test_keeps_history(self) -> None:
        buffered = BufferedTerminal()
        buffered.write("a")
        buffered.write("b")
        assert buffered.history == ["a", "b"]
        assert buffered.text() == "ab"

    def test_history_is_bounded(self) -> None:
        buffered = BufferedTerminal(max_chunks=2)
        for chunk in ("a", "b", "c"):
            buffered.write(chunk)
        assert buffered.history == ["b", "c"]

    @pytest.mark.asyncio
    async def test_subscriber_gets_history_then_live(self) -> None:
        """New subscribers replay history before live chunks."""
        buffered = BufferedTerminal()
        buffered.write("old")

        queue = buffered.subscribe()
        buffered.write("new")

        assert await queue.get() == "old"
        assert await queue.get() == "new"

    @pytest.mark.asyncio
    async def test_unsubscribe(self) -> None:
        buffered = BufferedTerminal()
        queue = buffered.subscribe()
        buffered.unsubscribe(queue)
        buffered.write("ignored")
        assert queue.empty()

    def test_clear(self) -> None:
        buffered = BufferedTerminal()
        buffered.write("x")
        buffered.clear()
        assert buffered.text() == ""
