from __future__ import annotations
import logging
import threading
from typing import Any, Callable, Dict, Optional

import serial  # pyserial

from .config_loader import SerialConfig

_log = logging.getLogger("coretemp.serial")

OnOpen = Callable[[], None]
OnData = Callable[[bytes], None]
OnError = Callable[[BaseException], None]

# ---------- base source ----------

class ByteSource:
    """
    A byte-stream device. open() starts delivery on the source's own thread:
    on_open() once the device is ready, on_data(chunk) for every chunk in
    arrival order, on_error(exc) at most once when the stream dies. The
    source does not reconnect; close() releases it and may be called from
    any thread, including from inside a callback.
    """

    def __init__(self):
        self._t: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._status = "idle"
        self._on_open: Optional[OnOpen] = None
        self._on_data: Optional[OnData] = None
        self._on_error: Optional[OnError] = None

    def open(self, on_open: OnOpen, on_data: OnData, on_error: OnError) -> None:
        if self._t and self._t.is_alive():
            return
        self._on_open, self._on_data, self._on_error = on_open, on_data, on_error
        self._stop.clear()
        self._t = threading.Thread(target=self._run_loop, name=f"Source[{self.__class__.__name__}]", daemon=True)
        self._t.start()

    def close(self) -> None:
        self._stop.set()
        t = self._t
        if t and t.is_alive() and t is not threading.current_thread():
            t.join(timeout=2.0)

    def is_running(self) -> bool:
        return bool(self._t and self._t.is_alive())

    def status(self) -> Dict[str, Any]:
        return {"type": self.__class__.__name__, "running": self.is_running(), "status": self._status}

    # subclasses implement this
    def _run_loop(self):  # pragma: no cover
        raise NotImplementedError

    def _fail(self, exc: BaseException) -> None:
        self._status = f"error: {exc}"
        if self._on_error is not None:
            cb, self._on_error = self._on_error, None
            cb(exc)

# ---------- serial port ----------

class SerialByteSource(ByteSource):
    """
    Reads raw chunks from a serial port (default 115200 8N1, DTR/RTS on).
    Bit rate and framing are handed to pyserial untouched.
    """

    def __init__(self, cfg: SerialConfig):
        super().__init__()
        self.cfg = cfg

    def _run_loop(self):
        port = self.cfg.port
        if not port:
            self._fail(ValueError("No serial port configured. Set app.serial.port"))
            return

        self._status = f"connecting {port}@{self.cfg.baud}"
        _log.info("open_serial", extra={"port": port, "baud": self.cfg.baud})
        try:
            with serial.Serial(
                port,
                self.cfg.baud,
                bytesize=self.cfg.bytesize,
                parity=self.cfg.parity,
                stopbits=self.cfg.stopbits,
                timeout=self.cfg.timeout_s,  # read() returns b'' on timeout
            ) as ser:
                ser.dtr = self.cfg.dtr
                ser.rts = self.cfg.rts
                self._status = f"open {port}"
                if self._on_open is not None:
                    self._on_open()

                while not self._stop.is_set():
                    waiting = ser.in_waiting
                    raw = ser.read(min(max(waiting, 1), self.cfg.read_size))
                    if not raw:
                        continue
                    if self._on_data is not None:
                        self._on_data(raw)
        except (serial.SerialException, OSError) as e:
            # Unplug, access denied, port vanished: terminal for this session.
            if not self._stop.is_set():
                _log.warning("serial_error", extra={"port": port, "err": str(e)})
                self._fail(e)
                return
        _log.info("serial_closed", extra={"port": port})
        self._status = "stopped"

# ---------- mock device ----------

class MockByteSource(ByteSource):
    """
    Emits synthetic device lines ("<seq>, <value> C, OK\\r\\n") every
    `period_s`, each split into two chunks at a moving offset. With a
    positive `count`, reports EOFError after that many lines, as if the
    device had been unplugged.
    """

    def __init__(self, period_s: float = 1.0, count: int = 0, start_value: float = 23.5):
        super().__init__()
        self.period_s = max(0.0, float(period_s))
        self.count = int(count or 0)
        self.start_value = float(start_value)

    @classmethod
    def from_cfg(cls, mock_cfg: Dict[str, Any]) -> "MockByteSource":
        mock_cfg = mock_cfg or {}
        return cls(
            period_s=float(mock_cfg.get("period_s", 1.0)),
            count=int(mock_cfg.get("count", 0) or 0),
            start_value=float(mock_cfg.get("start_value", 23.5)),
        )

    def line(self, i: int) -> bytes:
        value = self.start_value + 0.1 * (i % 5)
        return f"seq{i}, {value:.1f} C, OK\r\n".encode("ascii")

    def _run_loop(self):
        self._status = f"mocking every {self.period_s:.1f}s"
        if self._on_open is not None:
            self._on_open()
        i = 0
        while not self._stop.is_set():
            i += 1
            raw = self.line(i)
            cut = 1 + (i % (len(raw) - 1))
            if self._on_data is not None:
                self._on_data(raw[:cut])
                self._on_data(raw[cut:])
            if self.count and i >= self.count:
                self._fail(EOFError(f"mock device unplugged after {i} lines"))
                return
            if self._stop.wait(self.period_s):
                break
        self._status = "stopped"
