from __future__ import annotations
import logging
import queue
import threading
from typing import Any, Callable, Optional, Tuple

_log = logging.getLogger("coretemp.ui")

_Call = Tuple[Callable[..., Any], Tuple[Any, ...]]


class UiDispatcher:
    """
    Hand-off to the presentation context.

    Any thread may post(); callbacks only run on the thread that calls
    run_pending() / run_until(), i.e. the host's UI or main thread. A failing
    callback is logged and the loop keeps going.
    """

    def __init__(self):
        self._q: "queue.Queue[_Call]" = queue.Queue()

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        self._q.put((fn, args))

    def run_pending(self, timeout: Optional[float] = None) -> int:
        """
        Run everything queued so far. With a timeout, wait up to that long
        for the first callback. Returns how many callbacks ran.
        """
        ran = 0
        try:
            call = self._q.get(timeout=timeout) if timeout else self._q.get_nowait()
        except queue.Empty:
            return 0
        while True:
            self._invoke(call)
            ran += 1
            try:
                call = self._q.get_nowait()
            except queue.Empty:
                return ran

    def run_until(self, stop: threading.Event, poll_s: float = 0.1) -> None:
        """Service callbacks until `stop` is set, then run what is left."""
        while not stop.is_set():
            self.run_pending(timeout=poll_s)
        self.run_pending()

    def _invoke(self, call: _Call) -> None:
        fn, args = call
        try:
            fn(*args)
        except Exception:
            _log.exception("ui_callback_failed", extra={"callback": getattr(fn, "__qualname__", repr(fn))})


class InlineDispatcher:
    """Runs callbacks immediately on the posting thread (thread-safe sinks, tests)."""

    def post(self, fn: Callable[..., Any], *args: Any) -> None:
        try:
            fn(*args)
        except Exception:
            _log.exception("ui_callback_failed", extra={"callback": getattr(fn, "__qualname__", repr(fn))})
