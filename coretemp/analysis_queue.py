from __future__ import annotations
import logging
import queue
import threading
import time
from typing import Any, Callable, Dict, Optional

_log = logging.getLogger("coretemp.analysis")

_STOP = object()  # worker sentinel


class AnalysisQueue:
    """
    Single-worker, strictly ordered task queue.

    submit() never blocks. Lines are handed to `handler(line)` one at a time,
    in submission order, on one dedicated daemon thread.

    Capacity policy: `max_pending=None` (default) is unbounded; the queue
    grows if analysis is persistently slower than input. With a positive
    `max_pending`, a submit against a full queue drops the new line and
    returns False.

    A handler exception is logged and counted; the worker moves on.
    """

    def __init__(
        self,
        handler: Callable[[str], Any],
        *,
        max_pending: Optional[int] = None,
        name: str = "analysis",
    ):
        if max_pending is not None and max_pending <= 0:
            max_pending = None
        self.handler = handler
        self.max_pending = max_pending
        self.name = name
        self._q: "queue.Queue[Any]" = queue.Queue(maxsize=max_pending or 0)
        self._lock = threading.Lock()
        self._closed = False
        self._t: Optional[threading.Thread] = None

        # Observability counters
        self.submitted = 0
        self.completed = 0
        self.failed = 0
        self.dropped = 0
        self.discarded = 0

    # ---------- lifecycle ----------

    def start(self) -> None:
        with self._lock:
            if self._closed or (self._t and self._t.is_alive()):
                return
            self._t = threading.Thread(target=self._run, name=f"AnalysisQueue[{self.name}]", daemon=True)
            self._t.start()

    def is_running(self) -> bool:
        return bool(self._t and self._t.is_alive())

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, line: str) -> bool:
        with self._lock:
            if self._closed:
                _log.debug("analysis_submit_after_shutdown", extra={"queue": self.name})
                return False
            try:
                self._q.put_nowait(line)
            except queue.Full:
                self.dropped += 1
                _log.warning(
                    "analysis_queue_full_drop",
                    extra={"queue": self.name, "max_pending": self.max_pending, "line": line},
                )
                return False
            self.submitted += 1
            return True

    def shutdown(self, drain: bool = True, timeout: Optional[float] = None) -> int:
        """
        Stop accepting work. With `drain`, wait for queued tasks to finish;
        otherwise discard tasks that have not started. Returns the number of
        discarded tasks. Safe to call repeatedly and from any thread; from
        the worker itself it never waits.
        """
        with self._lock:
            first = not self._closed
            self._closed = True

        discarded = 0
        if first:
            # a queue that never started has nobody to drain it
            if not drain or self._t is None:
                while True:
                    try:
                        item = self._q.get_nowait()
                    except queue.Empty:
                        break
                    if item is not _STOP:
                        discarded += 1
                self.discarded += discarded
            try:
                self._q.put_nowait(_STOP)
            except queue.Full:
                pass  # worker notices the closed flag once the queue runs dry
            _log.info(
                "analysis_shutdown",
                extra={"queue": self.name, "drain": drain, "discarded": discarded},
            )

        t = self._t
        if t is not None and t.is_alive() and t is not threading.current_thread():
            t.join(timeout)
        return discarded

    # ---------- worker ----------

    def _run(self) -> None:
        while True:
            try:
                item = self._q.get(timeout=0.25)
            except queue.Empty:
                if self._closed:
                    break
                continue
            if item is _STOP:
                break
            t0 = time.perf_counter()
            try:
                self.handler(item)
                self.completed += 1
            except Exception:
                self.failed += 1
                _log.exception(
                    "analysis_task_failed",
                    extra={
                        "queue": self.name,
                        "line": item,
                        "latency_ms": round((time.perf_counter() - t0) * 1000, 1),
                    },
                )

    def stats(self) -> Dict[str, Any]:
        return {
            "running": self.is_running(),
            "closed": self._closed,
            "pending": self._q.qsize(),
            "max_pending": self.max_pending,
            "submitted": self.submitted,
            "completed": self.completed,
            "failed": self.failed,
            "dropped": self.dropped,
            "discarded": self.discarded,
        }
