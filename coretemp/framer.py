from __future__ import annotations
import codecs
import logging
import threading
from typing import Callable, List, Optional, Tuple

CR = 0x0D
LF = 0x0A

_log = logging.getLogger("coretemp.framer")


class LineFramer:
    """
    Incremental byte-stream line framer.

    Bytes arrive in arbitrary chunks; complete lines are decoded and handed to
    `on_line(str)` in the order their terminators arrived. Terminators:

        LF      -> one line
        CR LF   -> one line (the LF is swallowed, even across chunk boundaries)
        CR      -> one line, emitted immediately

    A line that is not valid text in `encoding` is dropped, counted, logged
    once and passed to `on_decode_error(raw, exc)` if given. No replacement
    characters are ever substituted. `encoding` must map LF and CR to the
    single bytes 0x0A / 0x0D (utf-8, ascii, latin-1, ...); utf-16/32 are
    rejected.

    feed() and flush() share a lock, so a teardown flush may race live data.
    on_line runs with the lock held; on_decode_error runs after the whole
    chunk is framed and the lock is released.
    """

    def __init__(
        self,
        on_line: Callable[[str], None],
        *,
        encoding: str = "utf-8",
        on_decode_error: Optional[Callable[[bytes, UnicodeDecodeError], None]] = None,
    ):
        self.on_line = on_line
        self.encoding = codecs.lookup(encoding).name  # LookupError on a bad name
        if "\n".encode(self.encoding) != b"\n" or "\r".encode(self.encoding) != b"\r":
            raise ValueError(
                f"Encoding {self.encoding!r} does not encode LF/CR as single bytes; "
                "lines are framed on raw 0x0A/0x0D"
            )
        self.on_decode_error = on_decode_error
        self._lock = threading.Lock()
        self._buf = bytearray()
        self._last_was_cr = False
        self._bad_lines: List[Tuple[bytes, UnicodeDecodeError]] = []

        self.lines_emitted = 0
        self.decode_errors = 0

    # ---------- public API ----------

    def feed(self, chunk: bytes) -> None:
        try:
            self._feed_locked(chunk)
        finally:
            self._report_bad_lines()

    def _feed_locked(self, chunk: bytes) -> None:
        with self._lock:
            for b in chunk:
                if b == LF:
                    if self._last_was_cr:
                        # second half of CR LF; the CR already ended the line
                        self._last_was_cr = False
                        continue
                    self._emit(self._take())
                elif b == CR:
                    self._emit(self._take())
                    self._last_was_cr = True
                else:
                    self._buf.append(b)
                    self._last_was_cr = False

    def flush(self) -> bool:
        """Emit an unterminated trailing fragment, if any. Returns True if a line was emitted."""
        try:
            with self._lock:
                self._last_was_cr = False
                if not self._buf:
                    return False
                before = self.lines_emitted
                self._emit(self._take())
                return self.lines_emitted > before
        finally:
            self._report_bad_lines()

    def reset(self) -> None:
        """Drop any partial line (stream teardown without recovery)."""
        with self._lock:
            self._buf.clear()
            self._last_was_cr = False

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet terminated."""
        with self._lock:
            return len(self._buf)

    # ---------- internals (lock held) ----------

    def _take(self) -> bytes:
        raw = bytes(self._buf)
        self._buf.clear()
        return raw

    def _emit(self, raw: bytes) -> None:
        self._last_was_cr = False
        try:
            line = raw.decode(self.encoding)
        except UnicodeDecodeError as e:
            self.decode_errors += 1
            _log.warning(
                "line_decode_error",
                extra={"raw": repr(raw), "encoding": self.encoding, "err": str(e)},
            )
            if self.on_decode_error is not None:
                self._bad_lines.append((raw, e))
            return
        self.lines_emitted += 1
        self.on_line(line)

    # ---------- decode error reporting (lock released) ----------

    def _report_bad_lines(self) -> None:
        with self._lock:
            bad, self._bad_lines = self._bad_lines, []
        for raw, exc in bad:
            self.on_decode_error(raw, exc)
