# alert_log.py

import logging
import os
from collections import deque
from pathlib import Path

from metric_types import AlertEvent, MetricId
from utils import format_timestamp, format_value, timestamp

log = logging.getLogger(__name__)

LOG_FILE = Path.home() / ".process_manager_pro.log"
EVENT_TAGS = {
    MetricId.CPU_PERCENT: "HIGH_CPU_ALERT",
    MetricId.TEMPERATURE: "TEMP_ALERT",
    MetricId.NET_RX: "NET_RX_ALERT",
    MetricId.NET_TX: "NET_TX_ALERT",
    MetricId.DISK_IO: "DISK_IO_ALERT",
}


def format_event(event: AlertEvent) -> str:
    tag = EVENT_TAGS.get(event.metric_id, event.metric_id.value.upper())
    line = (
        f"{format_timestamp(event.timestamp)} | {tag} | "
        f"threshold:{format_value(event.threshold)} | value:{format_value(event.value)}"
    )
    if event.subject:
        line += f" | {event.subject}"
    return line


class AlertLog:
    """Append-only text log shared with the kill/renice tooling."""

    def __init__(self, path=LOG_FILE):
        self.path = Path(path).expanduser()

    def ensure(self):
        if self.path.is_file():
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            f.write(f"# Process Manager Pro log - created {timestamp()}\n")
        os.chmod(self.path, 0o600)

    def append(self, event: AlertEvent):
        try:
            self.ensure()
            with open(self.path, "a") as f:
                f.write(format_event(event) + "\n")
        except OSError as e:
            log.error("cannot write alert log %s: %s", self.path, e)

    def tail(self, lines=200):
        if not self.path.is_file():
            return []
        try:
            with open(self.path, "r", errors="replace") as f:
                return [line.rstrip("\n") for line in deque(f, maxlen=lines)]
        except OSError as e:
            log.error("cannot read alert log %s: %s", self.path, e)
            return [f"cannot read {self.path}: {e.strerror or e}"]
