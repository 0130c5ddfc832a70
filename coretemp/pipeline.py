"""
CoreTemp pipeline
=================

Wires: ByteSource -> LineFramer -> AnalysisQueue -> parser -> dispatcher -> DisplaySink

Execution contexts
------------------
- source thread : on_open / on_data / on_error callbacks, owned by the source
- worker thread : the single AnalysisQueue worker (parsing only)
- UI context    : whoever services the dispatcher; the only place the sink runs

Teardown (stop/abort, idempotent)
---------------------------------
1. close the source so no more data arrives
2. flush the framer so a trailing unterminated line is still analyzed
3. shut the queue down (drain on stop(), discard on abort())
4. post offline text + teardown(reason) to the sink, after any readings

stop() waits for the drain without a limit. An optional `drain_timeout_s`
bounds that wait; a reading that finishes later is logged and dropped, so
the sink never sees show() after teardown().
"""

from __future__ import annotations
import logging
import threading
from typing import Any, Callable, Dict, Optional

from .analysis_queue import AnalysisQueue
from .dispatch import InlineDispatcher, UiDispatcher
from .display import DisplaySink
from .framer import LineFramer
from .parser import Reading, parse_line
from .sources import ByteSource

_log = logging.getLogger("coretemp.pipeline")


class Pipeline:
    def __init__(
        self,
        source: ByteSource,
        sink: DisplaySink,
        *,
        dispatcher: Optional[UiDispatcher | InlineDispatcher] = None,
        parser: Callable[[str], Optional[Reading]] = parse_line,
        encoding: str = "utf-8",
        max_pending: Optional[int] = None,
        open_text: Optional[str] = "serial opened",
        offline_text: Optional[str] = "device off",
        drain_timeout_s: Optional[float] = None,
    ):
        self.source = source
        self.sink = sink
        self.dispatcher = dispatcher if dispatcher is not None else UiDispatcher()
        self.parser = parser
        self.open_text = open_text
        self.offline_text = offline_text
        self.drain_timeout_s = drain_timeout_s

        self.framer = LineFramer(self._on_line, encoding=encoding)
        self.queue = AnalysisQueue(self._analyze, max_pending=max_pending, name="lines")

        self._lock = threading.Lock()
        self._started = False
        self._stopping = False
        self._sink_lock = threading.Lock()
        self._sink_closed = False
        self.done = threading.Event()
        self.reason: Optional[str] = None

        # Observability counters
        self.chunks_total = 0
        self.bytes_total = 0
        self.readings_total = 0
        self.unrecognized_total = 0

    # ---------- lifecycle ----------

    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            self._started = True
        self.queue.start()
        _log.info("pipeline_start", extra={"source": self.source.__class__.__name__})
        self.source.open(self._on_open, self._on_data, self._on_error)

    def stop(self, reason: str = "closed") -> None:
        """Graceful teardown: queued lines are analyzed before the sink is told."""
        self._teardown(reason, drain=True)

    def abort(self, reason: str = "aborted") -> None:
        """Abrupt teardown: lines not yet analyzed are discarded."""
        self._teardown(reason, drain=False)

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self.done.wait(timeout)

    def _teardown(self, reason: str, *, drain: bool) -> None:
        with self._lock:
            if self._stopping:
                return
            self._stopping = True
            self.reason = reason

        self.source.close()
        if drain:
            self.framer.flush()
        else:
            self.framer.reset()
        discarded = self.queue.shutdown(drain=drain, timeout=self.drain_timeout_s)

        with self._sink_lock:
            self._sink_closed = True
            if self.offline_text:
                self.dispatcher.post(self.sink.show, self.offline_text)
            self.dispatcher.post(self.sink.teardown, reason)

        _log.info("pipeline_stop", extra={"reason": reason, "drain": drain, "discarded": discarded, **self.stats()})
        self.done.set()

    # ---------- source callbacks (source thread) ----------

    def _on_open(self) -> None:
        _log.info("stream_open", extra=self.source.status())
        if self.open_text:
            self._show(self.open_text)

    def _on_data(self, chunk: bytes) -> None:
        self.chunks_total += 1
        self.bytes_total += len(chunk)
        self.framer.feed(chunk)

    def _on_error(self, exc: BaseException) -> None:
        _log.warning("stream_error", extra={"err": str(exc), "err_type": type(exc).__name__})
        self.stop(reason=f"{type(exc).__name__}: {exc}")

    # ---------- framer output / worker ----------

    def _on_line(self, line: str) -> None:
        self.queue.submit(line)

    def _analyze(self, line: str) -> None:
        reading = self.parser(line)
        if reading is None:
            self.unrecognized_total += 1
            _log.debug("line_unrecognized", extra={"line": line})
            return
        self.readings_total += 1
        _log.debug("reading", extra={"line": line, "value": reading.value, "unit": reading.unit})
        self._show(reading.value)

    def _show(self, text: str) -> None:
        # nothing reaches the sink after its teardown was posted
        with self._sink_lock:
            if self._sink_closed:
                _log.warning("show_after_teardown_dropped", extra={"text": text})
                return
            self.dispatcher.post(self.sink.show, text)

    def stats(self) -> Dict[str, Any]:
        q = self.queue.stats()
        return {
            "chunks": self.chunks_total,
            "bytes": self.bytes_total,
            "lines": self.framer.lines_emitted,
            "decode_errors": self.framer.decode_errors,
            "readings": self.readings_total,
            "unrecognized": self.unrecognized_total,
            "analysis_failed": q["failed"],
            "analysis_dropped": q["dropped"],
            "analysis_pending": q["pending"],
        }
