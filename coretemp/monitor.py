"""
CoreTemp - Serial Reading Monitor
=================================

Purpose
-------
Read a serial thermometer's line stream, pick out "<seq>, <value> <unit>, OK"
readings and show the latest value on a display sink.

Key behaviors
-------------
- Input sources (select via YAML or CLI):
    * serial : USB/serial byte stream (default 115200 8N1, DTR/RTS on)
    * mock   : synthetic lines at intervals (for testing displays end-to-end)
- Line framing accepts LF, CR LF and bare CR terminators.
- Parsing runs on one background worker; the display is only touched from
  the main thread.
- A stream error (unplug, I/O fault) ends the session: the last partial
  line is recovered, pending lines are analyzed, and the display shows the
  offline text. There is no automatic reconnect.

CLI
---
    python -m coretemp.monitor --config /path/to/config.yaml
    # Optional runtime overrides:
    --source serial|mock
    --port /dev/ttyUSB0
    --baud 115200
"""

from __future__ import annotations
import argparse
import logging
import signal
import sys
from typing import Any, Dict, List, Optional

from .config_loader import (
    SerialConfig,
    get_analysis_cfg,
    get_display_cfg,
    get_framer_cfg,
    get_log_level,
    get_mock_cfg,
    get_source_cfg,
    load_config,
)
from .dispatch import UiDispatcher
from .display import ConsoleDisplay, DisplaySink, OscDisplayOut
from .pipeline import Pipeline
from .sources import ByteSource, MockByteSource, SerialByteSource

log = logging.getLogger("coretemp")


# ------------------------------------------------------------
# Builders
# ------------------------------------------------------------

def build_source(cfg: Dict[str, Any]) -> ByteSource:
    kind = str(get_source_cfg(cfg).get("type", "serial")).lower()
    if kind == "mock":
        return MockByteSource.from_cfg(get_mock_cfg(cfg))
    if kind == "serial":
        return SerialByteSource(SerialConfig.from_cfg(cfg))
    raise ValueError(f"Unknown app.source.type: {kind}")


def build_sink(cfg: Dict[str, Any]) -> DisplaySink:
    disp = get_display_cfg(cfg)
    kind = str(disp.get("sink", "console")).lower()
    if kind == "console":
        return ConsoleDisplay()
    if kind == "osc":
        out = OscDisplayOut(disp.get("osc", {}) or {})
        out.start()
        return out
    raise ValueError(f"Unknown app.display.sink: {kind}")


def build_pipeline(cfg: Dict[str, Any], *, dispatcher: Optional[UiDispatcher] = None,
                   source: Optional[ByteSource] = None,
                   sink: Optional[DisplaySink] = None) -> Pipeline:
    disp = get_display_cfg(cfg)
    max_pending = int(get_analysis_cfg(cfg).get("max_pending", 0) or 0)
    return Pipeline(
        source if source is not None else build_source(cfg),
        sink if sink is not None else build_sink(cfg),
        dispatcher=dispatcher,
        encoding=str(get_framer_cfg(cfg).get("encoding", "utf-8")),
        max_pending=max_pending or None,  # 0 means unbounded
        open_text=disp.get("open_text", "serial opened"),
        offline_text=disp.get("offline_text", "device off"),
    )


def _apply_overrides(cfg: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    app = cfg.setdefault("app", {})
    if args.source:
        app.setdefault("source", {})["type"] = args.source
    if args.port:
        app.setdefault("serial", {})["port"] = args.port
    if args.baud:
        app.setdefault("serial", {})["baud"] = args.baud
    return cfg


# ------------------------------------------------------------
# Entry point
# ------------------------------------------------------------

def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="CoreTemp serial monitor")
    ap.add_argument("--config", help="Path to config/config.yaml (optional)")
    ap.add_argument("--source", choices=("serial", "mock"), help="Override app.source.type")
    ap.add_argument("--port", help="Override app.serial.port")
    ap.add_argument("--baud", type=int, help="Override app.serial.baud")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    cfg = _apply_overrides(load_config(args.config), args)

    logging.basicConfig(
        level=getattr(logging, get_log_level(cfg, "INFO"), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ui = UiDispatcher()
    pipeline = build_pipeline(cfg, dispatcher=ui)

    def _on_signal(signum, _frame):
        log.info("monitor_signal", extra={"signal": signum})
        pipeline.stop(reason="interrupted")

    prev_handler = signal.signal(signal.SIGTERM, _on_signal)

    pipeline.start()
    try:
        # main thread is the display context
        ui.run_until(pipeline.done)
    except KeyboardInterrupt:
        pipeline.stop(reason="interrupted")
        ui.run_pending()
    finally:
        signal.signal(signal.SIGTERM, prev_handler)

    log.info("monitor_exit", extra={"reason": pipeline.reason, **pipeline.stats()})
    return 0 if pipeline.reason == "interrupted" else 1


if __name__ == "__main__":
    sys.exit(main())
