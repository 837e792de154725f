# metric_types.py

import enum
from dataclasses import dataclass, field
from typing import Optional

FLAG_DEGRADED = "degraded"
FLAG_FIRST_SAMPLE = "first_sample"
FLAG_WRAPAROUND = "counter_wraparound"


class MetricId(enum.Enum):
    CPU_PERCENT = "cpu_percent"
    MEM_PERCENT = "mem_percent"
    NET_RX = "net_rx_bytes_per_sec"
    NET_TX = "net_tx_bytes_per_sec"
    DISK_IO = "disk_io"
    TEMPERATURE = "temperature"


@dataclass(frozen=True)
class Metric:
    metric_id: MetricId
    value: float
    timestamp: float
    flag: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.flag == FLAG_DEGRADED


@dataclass(frozen=True)
class AlertEvent:
    metric_id: MetricId
    value: float
    threshold: float
    timestamp: float
    subject: str = ""


@dataclass(frozen=True)
class NetCounterSnapshot:
    interface: str
    rx_bytes: int
    tx_bytes: int
    taken_at: float


@dataclass(frozen=True)
class ProcessUsage:
    pid: int
    name: str
    cpu_percent: float

    @property
    def subject(self) -> str:
        return f"{self.pid} {self.name}"


@dataclass(frozen=True)
class DiskStat:
    device: str
    reads_per_sec: float = 0.0
    writes_per_sec: float = 0.0
    read_kb_per_sec: float = 0.0
    write_kb_per_sec: float = 0.0
    util_percent: float = 0.0


@dataclass(frozen=True)
class SensorReading:
    chip: str
    label: str
    current: float
    high: Optional[float] = None
    critical: Optional[float] = None


class MonitorError(Exception):
    """Base class for everything the sampling core raises on purpose."""


class SampleError(MonitorError):
    """An OS source could not be read this tick."""


class CapabilityUnavailable(SampleError):
    """An optional external tool or sensor is missing."""

    def __init__(self, capability, message=None):
        self.capability = capability
        super().__init__(message or f"{capability} is not available")


class CounterWraparound(SampleError):
    """A monotonic counter went backwards between two reads."""

    def __init__(self, name, previous, current):
        self.name = name
        self.previous = previous
        self.current = current
        super().__init__(f"{name} counter went back from {previous} to {current}")


class InvalidConfiguration(MonitorError):
    """A setting was rejected; the previous value stays in effect."""

    def __init__(self, key, value, reason=""):
        self.key = key
        self.value = value
        msg = f"invalid value for {key}: {value!r}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


@dataclass
class SampleSet:
    """Everything a metric group pulled from the sampler in one tick."""

    metrics: dict = field(default_factory=dict)
    entities: list = field(default_factory=list)
    errors: list = field(default_factory=list)
    # metric ids carried over from an earlier tick because this read failed
    stale: set = field(default_factory=set)

    def keep_last_good(self, metric):
        self.metrics[metric.metric_id] = metric
        self.stale.add(metric.metric_id)

    def fresh_metrics(self):
        return [m for k, m in self.metrics.items() if k not in self.stale]
