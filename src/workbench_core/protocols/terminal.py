"""Terminal protocol for process output sinks."""

from typing import Protocol


class TerminalSink(Protocol):
    """Consumer of process output, such as a browser terminal or a buffer."""

    def write(self, data: str) -> None:
        """Write a chunk of output exactly as received."""
        ...
