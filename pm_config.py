# pm_config.py

import json
import math
import sys
from pathlib import Path
from typing import Any, Dict

from metric_types import InvalidConfiguration, MetricId

CONFIG_DIR = Path.home() / ".config/pmpro"
CONFIG_FILE = CONFIG_DIR / "config.json"

DEFAULTS: Dict[str, Any] = {
    "interval": 1.0,
    "history_len": 40,
    "cpu_threshold": 80,
    "temp_threshold": None,
    "net_threshold": None,
    "disk_threshold": None,
    "cpu_scale": 2,
    "mem_scale": 2,
    "rate_scale": 100 * 1024,
    "top_n": 5,
    "interface": None,
    "log_file": str(Path.home() / ".process_manager_pro.log"),
}


def _number(key, value, minimum=0.0, strict=False, integer=False, optional=False):
    if value is None and optional:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise InvalidConfiguration(key, value, "not a number")
    try:
        number = float(value)
    except (ValueError, OverflowError):
        raise InvalidConfiguration(key, value, "not a number")
    if not math.isfinite(number):
        raise InvalidConfiguration(key, value, "must be finite")
    if integer:
        if not number.is_integer():
            raise InvalidConfiguration(key, value, "must be a whole number")
        number = int(number)
    if number < minimum or (strict and number == minimum):
        relation = ">" if strict else ">="
        raise InvalidConfiguration(key, value, f"must be {relation} {minimum:g}")
    return number


VALIDATORS = {
    "interval": lambda v: _number("interval", v, strict=True),
    "history_len": lambda v: _number("history_len", v, minimum=1, integer=True),
    "cpu_threshold": lambda v: _number("cpu_threshold", v),
    "temp_threshold": lambda v: _number("temp_threshold", v, optional=True),
    "net_threshold": lambda v: _number("net_threshold", v, optional=True),
    "disk_threshold": lambda v: _number("disk_threshold", v, optional=True),
    "cpu_scale": lambda v: _number("cpu_scale", v, strict=True),
    "mem_scale": lambda v: _number("mem_scale", v, strict=True),
    "rate_scale": lambda v: _number("rate_scale", v, strict=True),
    "top_n": lambda v: _number("top_n", v, minimum=1, integer=True),
    "interface": lambda v: v if v is None or isinstance(v, str) else _bad("interface", v),
    "log_file": lambda v: v if isinstance(v, str) and v else _bad("log_file", v),
}


def _bad(key, value):
    raise InvalidConfiguration(key, value, "expected a string")


def validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Returns a validated copy; the first bad key raises InvalidConfiguration."""
    validated = dict(DEFAULTS)
    for key, value in config.items():
        if key not in VALIDATORS:
            raise InvalidConfiguration(key, value, "unknown setting")
        validated[key] = VALIDATORS[key](value)
    return validated


def load_config(path=CONFIG_FILE) -> Dict[str, Any]:
    """
    Loads user settings from ~/.config/pmpro/config.json.

    A missing or broken file means defaults; an invalid value falls back to
    the default for that key only.
    """

    path = Path(path)
    raw: Dict[str, Any] = {}
    if path.is_file():
        try:
            with open(path, "r") as f:
                raw = json.load(f)
        except json.JSONDecodeError:
            print(f"Warning: malformed JSON in settings file: {path}", file=sys.stderr)
        except OSError as e:
            print(f"Error loading settings: {e}", file=sys.stderr)
    if not isinstance(raw, dict):
        print(f"Warning: settings file is not a JSON object: {path}", file=sys.stderr)
        raw = {}

    config = dict(DEFAULTS)
    for key, value in raw.items():
        try:
            config.update({key: validate_config({key: value})[key]})
        except InvalidConfiguration as e:
            print(f"Warning: {e}, using default", file=sys.stderr)
    return config


def save_config(config: Dict[str, Any], path=CONFIG_FILE) -> bool:
    """Writes known keys back to disk. Returns False if the file could not be written."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump({k: config[k] for k in DEFAULTS if k in config}, f, indent=4)
    except OSError as e:
        print(f"Error saving settings to {path}: {e}", file=sys.stderr)
        return False
    return True


def threshold_limits(config: Dict[str, Any]) -> Dict[MetricId, float]:
    limits = {MetricId.CPU_PERCENT: config["cpu_threshold"]}
    if config.get("temp_threshold") is not None:
        limits[MetricId.TEMPERATURE] = config["temp_threshold"]
    if config.get("net_threshold") is not None:
        limits[MetricId.NET_RX] = config["net_threshold"]
        limits[MetricId.NET_TX] = config["net_threshold"]
    if config.get("disk_threshold") is not None:
        limits[MetricId.DISK_IO] = config["disk_threshold"]
    return limits
