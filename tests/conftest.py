"""
Pytest configuration and shared fixtures for the CoreTemp tests.

Provides a framer that records its lines, a display sink that records what
it was shown (and on which thread), and a scripted byte source that plays a
fixed list of chunks and then optionally fails like an unplugged device.
"""

import threading
from typing import List, Optional, Sequence

import pytest

from coretemp.display import DisplaySink
from coretemp.framer import LineFramer
from coretemp.sources import ByteSource


class RecordingDisplay(DisplaySink):
    def __init__(self):
        self.shown: List[str] = []
        self.threads: List[str] = []
        self.teardowns: List[str] = []

    def show(self, text: str) -> None:
        self.shown.append(text)
        self.threads.append(threading.current_thread().name)

    def teardown(self, reason: str) -> None:
        self.teardowns.append(reason)


class ScriptedSource(ByteSource):
    """Plays `chunks` on its own thread, then fails with `error` if given."""

    def __init__(self, chunks: Sequence[bytes], error: Optional[BaseException] = None):
        super().__init__()
        self.chunks = list(chunks)
        self.error = error
        self.closed = threading.Event()

    def _run_loop(self):
        if self._on_open is not None:
            self._on_open()
        for chunk in self.chunks:
            if self._stop.is_set():
                return
            self._on_data(chunk)
        if self.error is not None:
            self._fail(self.error)
            return
        self._stop.wait()

    def close(self) -> None:
        self.closed.set()
        super().close()


@pytest.fixture
def lines() -> List[str]:
    return []


@pytest.fixture
def framer(lines) -> LineFramer:
    return LineFramer(lines.append)


@pytest.fixture
def display() -> RecordingDisplay:
    return RecordingDisplay()


@pytest.fixture
def scripted_source():
    return ScriptedSource
