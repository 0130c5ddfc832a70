# coretemp/display.py
# -----------------------------------------------------------------------------
# Presentation sinks. The pipeline only ever reaches these through a
# dispatcher, so they run on the host's UI/main thread.
#   - ConsoleDisplay : rewrites the current value on a text stream
#   - OscDisplayOut  : sends the value as an OSC frame (UDP unicast) via
#                      python-osc's SimpleUDPClient
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
import sys
import time
from typing import Any, Dict, Optional, TextIO, Union
from pythonosc.udp_client import SimpleUDPClient

_log = logging.getLogger("coretemp.display")


class DisplaySink:
    """
    Polymorphic presentation interface:
      - show(text): replace the displayed value
      - teardown(reason): the stream has ended; no more show() calls follow
    """
    def show(self, text: str) -> None:
        raise NotImplementedError

    def teardown(self, reason: str) -> None:
        return


class ConsoleDisplay(DisplaySink):
    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout
        self.current: Optional[str] = None
        self.closed_reason: Optional[str] = None

    def show(self, text: str) -> None:
        self.current = text
        self.stream.write(f"{text}\n")
        self.stream.flush()

    def teardown(self, reason: str) -> None:
        self.closed_reason = reason
        self.stream.write(f"[closed: {reason}]\n")
        self.stream.flush()


class OscDisplayOut(DisplaySink):
    def __init__(self, cfg: Dict[str, Any]):
        # cfg structure:
        # app.display.osc: { host, port, address, status_address, send_repeat{count, interval_ms} }
        self.host = (cfg or {}).get("host", "127.0.0.1")
        self.port = int((cfg or {}).get("port", 9000))
        self.address: str = (cfg or {}).get("address", "/coretemp/value")
        self.status_address: str = (cfg or {}).get("status_address", "/coretemp/status")

        rep = (cfg or {}).get("send_repeat") or {}
        self.repeat_count = int(rep.get("count", 1))        # e.g. 2 -> send twice
        self.repeat_interval = float(rep.get("interval_ms", 0)) / 1000.0

        self._client: Optional[SimpleUDPClient] = None

    def start(self) -> None:
        if self._client is None:
            self._client = SimpleUDPClient(self.host, self.port)

    def stop(self) -> None:
        self._client = None

    # --------------------- internal helper ---------------------

    def _send(self, path: str, value: Union[float, str]) -> None:
        """Fire-and-forget with optional repeats for UDP resiliency."""
        if not self._client:
            return
        sends = max(1, self.repeat_count)
        for i in range(sends):
            try:
                self._client.send_message(path, value)
            except OSError as e:
                # A missing lighting/display host must never stop the reader.
                _log.warning("osc_send_failed", extra={"path": path, "err": str(e)})
            if i + 1 < sends and self.repeat_interval > 0:
                time.sleep(self.repeat_interval)

    # ----------------------- public API -----------------------

    def show(self, text: str) -> None:
        """Numeric text goes out as a float, anything else as a string."""
        try:
            value: Union[float, str] = float(text)
        except ValueError:
            value = text
        self._send(self.address, value)

    def teardown(self, reason: str) -> None:
        self._send(self.status_address, reason)
        self.stop()
