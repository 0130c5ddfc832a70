# coretemp/config_loader.py
from __future__ import annotations
"""
Unified configuration loader for the CoreTemp monitor.

Single source of truth:
    config/config.yaml

Design notes
------------
- If the file is missing or broken, we raise a friendly RuntimeError that
  prints absolute paths for quick fixes.
- Unknown keys are fine; we pass the full dict through untouched.
- Helpers return {} or sensible defaults when sections are absent.
- Nothing is loaded at import time; the CLI loads once and passes the dict
  down to the accessors.

Public API
----------
- load_config(path: str|Path|None = None)
- get_source_cfg(cfg) -> dict
- get_serial_cfg(cfg) -> dict
- get_mock_cfg(cfg) -> dict
- get_framer_cfg(cfg) -> dict
- get_analysis_cfg(cfg) -> dict
- get_display_cfg(cfg) -> dict
- get_log_level(cfg, default: str = "INFO") -> str
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

# ---------- Files & roots ----------
PROJECT_ROOT = Path(__file__).resolve().parents[1]
CONFIG_DIR   = PROJECT_ROOT / "config"
DEFAULT_CFG  = CONFIG_DIR / "config.yaml"

SOURCE_TYPES = ("serial", "mock")


# ---------- I/O helpers ----------
def _load_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML mapping from `path`. Human-friendly errors, strict root type."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise RuntimeError(
            f"Missing configuration file: {path}\n"
            f"Expected a single-file config with an 'app:' section.\n"
            f"Repo root: {PROJECT_ROOT}"
        )
    except OSError as ex:
        raise RuntimeError(f"Failed to read {path}: {type(ex).__name__}: {ex}")

    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as ex:
        raise RuntimeError(f"Failed to parse YAML {path}: {type(ex).__name__}: {ex}")

    if not isinstance(data, dict):
        raise RuntimeError(f"Root of {path} must be a mapping/object, not {type(data).__name__}")
    return data


def _resolve_path(p: str | os.PathLike[str]) -> Path:
    """Return absolute path; resolve relative to repo root."""
    pth = Path(p)
    return pth if pth.is_absolute() else (PROJECT_ROOT / pth).resolve()


# ---------- Loader ----------
def load_config(path: str | os.PathLike[str] | None = None) -> Dict[str, Any]:
    """
    Load a single YAML file (default: config/config.yaml), validate the
    required shape, and return the raw dict (unmodified).
    """
    cfg_path = _resolve_path(path) if path else DEFAULT_CFG
    cfg = _load_yaml(cfg_path)

    app = cfg.get("app", {})
    if not isinstance(app, dict):
        raise RuntimeError(
            f"CONFIG key 'app' in {cfg_path} must be a mapping, not {type(app).__name__}"
        )

    source = str((app.get("source") or {}).get("type", "serial")).lower()
    if source not in SOURCE_TYPES:
        raise RuntimeError(
            f"CONFIG app.source.type must be one of {', '.join(SOURCE_TYPES)}; got {source!r}"
        )
    return cfg


# ---------- Accessors ----------
def _app(cfg: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return (cfg or {}).get("app", {}) or {}


def get_source_cfg(cfg: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Return the source selector block ({type: serial|mock}) or {}."""
    return _app(cfg).get("source", {}) or {}


def get_serial_cfg(cfg: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Return serial port settings or {}."""
    return _app(cfg).get("serial", {}) or {}


def get_mock_cfg(cfg: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Return mock generator settings or {}."""
    return _app(cfg).get("mock", {}) or {}


def get_framer_cfg(cfg: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return _app(cfg).get("framer", {}) or {}


def get_analysis_cfg(cfg: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return _app(cfg).get("analysis", {}) or {}


def get_display_cfg(cfg: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Return the presentation block (sink type, texts, osc settings) or {}."""
    return _app(cfg).get("display", {}) or {}


def get_log_level(cfg: Optional[Dict[str, Any]], default: str = "INFO") -> str:
    """Return log level as 'INFO'/'DEBUG', etc."""
    lvl = ((cfg or {}).get("log", {}) or {}).get("level", default)
    # normalize common variants
    return str(lvl).upper()


# ---------- config snapshots ----------

@dataclass
class SerialConfig:
    port: Optional[str] = None
    baud: int = 115200
    bytesize: int = 8
    parity: str = "N"
    stopbits: int = 1
    timeout_s: float = 0.25
    dtr: bool = True
    rts: bool = True
    read_size: int = 4096

    @classmethod
    def from_cfg(cls, cfg: Optional[Dict[str, Any]]) -> "SerialConfig":
        ser = get_serial_cfg(cfg)
        baud_value = ser.get("baud") or ser.get("baudrate") or 115200
        try:
            baud = int(baud_value)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid baud value: {baud_value!r}") from None

        return cls(
            port=ser.get("port"),
            baud=baud,
            bytesize=int(ser.get("bytesize", 8)),
            parity=str(ser.get("parity", "N")).upper(),
            stopbits=int(ser.get("stopbits", 1)),
            timeout_s=float(ser.get("timeout_s", 0.25)),
            dtr=bool(ser.get("dtr", True)),
            rts=bool(ser.get("rts", True)),
            read_size=max(1, int(ser.get("read_size", 4096))),
        )
