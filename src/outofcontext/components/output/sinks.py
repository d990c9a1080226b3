"""Token sinks: terminal, file, and fan-out to several of them."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import IO, List, Optional, Sequence, Union

from ...core.contracts import OutputSink

logger = logging.getLogger(__name__)


class TerminalSink(OutputSink):
    def __init__(self, stream: Optional[IO[str]] = None) -> None:
        self.stream = stream if stream is not None else sys.stdout

    def write_token(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()


class FileSink(OutputSink):
    """Mirror of the stream into a file, truncated when opened."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._f = self.path.open("w", encoding="utf-8")

    def write_token(self, text: str) -> None:
        self._f.write(text)
        self._f.flush()

    def close(self) -> None:
        if not self._f.closed:
            self._f.close()


class BufferSink(OutputSink):
    """Collects tokens in memory."""

    def __init__(self) -> None:
        self.pieces: List[str] = []

    def write_token(self, text: str) -> None:
        self.pieces.append(text)

    @property
    def text(self) -> str:
        return "".join(self.pieces)


class MultiSink(OutputSink):
    def __init__(self, sinks: Sequence[OutputSink]) -> None:
        self.sinks = list(sinks)

    def write_token(self, text: str) -> None:
        for sink in self.sinks:
            sink.write_token(text)

    def close(self) -> None:
        for sink in self.sinks:
            sink.close()


def build_output(mirror_file: Optional[Union[str, Path]] = None) -> OutputSink:
    """Terminal output, plus a file mirror when ``mirror_file`` is given."""
    terminal = TerminalSink()
    if mirror_file is None:
        return terminal
    logger.info("Mirroring output to %s", mirror_file)
    return MultiSink([terminal, FileSink(mirror_file)])
