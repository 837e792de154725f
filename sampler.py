# sampler.py
#
# Every read of an OS counter or external tool goes through Sampler, so the
# text parsing stays in this file and the rest of the core only sees typed
# values.

import logging
import os
import re
import shutil
import subprocess
import time
from typing import List, Optional, Tuple

import psutil

from metric_types import (
    FLAG_DEGRADED,
    FLAG_FIRST_SAMPLE,
    FLAG_WRAPAROUND,
    CapabilityUnavailable,
    CounterWraparound,
    DiskStat,
    InvalidConfiguration,
    Metric,
    MetricId,
    NetCounterSnapshot,
    ProcessUsage,
    SampleError,
    SensorReading,
)

log = logging.getLogger(__name__)

IOSTAT_SAMPLE_SECONDS = 1
IOSTAT_TIMEOUT = IOSTAT_SAMPLE_SECONDS + 5.0
SENSORS_TIMEOUT = 3.0
# guest time is already accounted in user/nice on Linux
_CPU_SKIP_FIELDS = ("guest", "guest_nice")

_SENSOR_LINE = re.compile(
    r"^(?P<label>[^:]+):\s+\+?(?P<current>-?[\d.]+)\s*°?C"
    r"(?:.*?high\s*=\s*\+?(?P<high>-?[\d.]+))?"
    r"(?:.*?crit\s*=\s*\+?(?P<crit>-?[\d.]+))?"
)


def counter_delta(previous, current):
    """Returns (delta, wrapped). A counter that went backwards gives 0."""
    if current < previous:
        return 0, True
    return current - previous, False


def _psutil_net_counters():
    # nowrap=False: wraparound is detected and reported by net_rates
    return psutil.net_io_counters(pernic=True, nowrap=False)


def _cpu_total(times):
    return sum(
        getattr(times, name)
        for name in times._fields
        if name not in _CPU_SKIP_FIELDS
    )


def parse_iostat(output: str) -> List[DiskStat]:
    stats = []
    columns = None
    for line in output.splitlines():
        parts = line.split()
        if not parts:
            columns = None
            continue
        head = parts[0].rstrip(":")
        if head == "Device":
            columns = parts[1:]
            continue
        if columns is None:
            continue
        values = parts[1:]
        if len(values) != len(columns):
            raise SampleError(f"unexpected iostat row: {line.strip()}")
        try:
            row = dict(zip(columns, (float(v.replace(",", ".")) for v in values)))
        except ValueError:
            raise SampleError(f"unparsable iostat row: {line.strip()}")
        stats.append(
            DiskStat(
                device=parts[0],
                reads_per_sec=row.get("r/s", 0.0),
                writes_per_sec=row.get("w/s", 0.0),
                read_kb_per_sec=row.get("rkB/s", 0.0),
                write_kb_per_sec=row.get("wkB/s", 0.0),
                util_percent=row.get("%util", 0.0),
            )
        )
    return stats


def parse_sensors(output: str) -> List[SensorReading]:
    readings = []
    chip = None
    for raw in output.splitlines():
        line = raw.strip()
        if not line:
            chip = None
            continue
        if chip is None:
            chip = line
            continue
        if line.startswith("Adapter:"):
            continue
        m = _SENSOR_LINE.match(line)
        if not m:
            continue
        readings.append(
            SensorReading(
                chip=chip,
                label=m.group("label").strip(),
                current=float(m.group("current")),
                high=float(m.group("high")) if m.group("high") else None,
                critical=float(m.group("crit")) if m.group("crit") else None,
            )
        )
    return readings


class Sampler:
    def __init__(self, net_counters=None, iostat_cmd="iostat",
                 sensors_cmd="sensors", clock=time.monotonic):
        self.net_counters = net_counters or _psutil_net_counters
        self.iostat_cmd = iostat_cmd
        self.sensors_cmd = sensors_cmd
        self.clock = clock
        self.interface: Optional[str] = None
        self.previous_counters: Optional[NetCounterSnapshot] = None
        self.wraparounds: List[CounterWraparound] = []
        try:
            self.previous_cpu_times = psutil.cpu_times()
        except Exception as e:
            log.warning("cpu_times unavailable at start: %s", e)
            self.previous_cpu_times = None

    # --- CPU / memory ---

    def cpu_percent(self) -> Metric:
        now = time.time()
        try:
            current = psutil.cpu_times()
        except Exception as e:
            log.warning("cpu_times failed, degraded sample: %s", e)
            return Metric(MetricId.CPU_PERCENT, 0.0, now, FLAG_DEGRADED)
        previous = self.previous_cpu_times
        self.previous_cpu_times = current
        if previous is None:
            return Metric(MetricId.CPU_PERCENT, 0.0, now, FLAG_DEGRADED)
        total_delta = _cpu_total(current) - _cpu_total(previous)
        idle_delta = max(0.0, current.idle - previous.idle)
        if total_delta <= 1e-6:
            log.debug("cpu_times did not advance, degraded sample")
            return Metric(MetricId.CPU_PERCENT, 0.0, now, FLAG_DEGRADED)
        idle_percent = max(0.0, min(100.0, idle_delta / total_delta * 100.0))
        return Metric(MetricId.CPU_PERCENT, round(100.0 - idle_percent, 1), now)

    def mem_percent(self) -> Metric:
        try:
            mem = psutil.virtual_memory()
        except Exception as e:
            raise SampleError(f"virtual_memory failed: {e}") from e
        if not mem.total:
            raise SampleError("total memory reported as zero")
        used = mem.total - mem.available
        return Metric(MetricId.MEM_PERCENT, round(used / mem.total * 100), time.time())

    def top_cpu_processes(self, n=5) -> List[ProcessUsage]:
        found = []
        for proc in psutil.process_iter(attrs=["pid", "name", "cpu_percent"], ad_value=None):
            try:
                info = proc.info
                if info["pid"] is None or not info["name"] or info["name"] == "idle":
                    continue
                found.append(
                    ProcessUsage(info["pid"], info["name"], float(info["cpu_percent"] or 0.0))
                )
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
        found.sort(key=lambda p: p.cpu_percent, reverse=True)
        return found[:n]

    # --- network ---

    def _nic_counters(self):
        try:
            return self.net_counters()
        except (OSError, RuntimeError) as e:
            raise SampleError(f"cannot read network counters: {e}") from e

    def list_interfaces(self) -> List[str]:
        return sorted(self._nic_counters())

    def select_interface(self, name):
        try:
            known = self._nic_counters()
        except SampleError as e:
            raise InvalidConfiguration("interface", name, str(e)) from e
        if not name or name not in known:
            raise InvalidConfiguration("interface", name, "interface not found")
        self.interface = name
        self.previous_counters = None

    def default_interface(self) -> Optional[str]:
        for name in self.list_interfaces():
            if name != "lo":
                return name
        return None

    def read_net_counters(self, interface) -> NetCounterSnapshot:
        stats = self._nic_counters().get(interface)
        if stats is None:
            raise SampleError(f"interface {interface} not found")
        return NetCounterSnapshot(
            interface=interface,
            rx_bytes=stats.bytes_recv,
            tx_bytes=stats.bytes_sent,
            taken_at=self.clock(),
        )

    def net_rates(self) -> Tuple[Metric, Metric]:
        if self.interface is None:
            raise SampleError("no interface selected")
        now = time.time()
        self.wraparounds = []
        current = self.read_net_counters(self.interface)
        previous = self.previous_counters
        self.previous_counters = current
        if previous is None:
            return (
                Metric(MetricId.NET_RX, 0.0, now, FLAG_FIRST_SAMPLE),
                Metric(MetricId.NET_TX, 0.0, now, FLAG_FIRST_SAMPLE),
            )
        elapsed = current.taken_at - previous.taken_at
        rx_delta, rx_wrapped = counter_delta(previous.rx_bytes, current.rx_bytes)
        tx_delta, tx_wrapped = counter_delta(previous.tx_bytes, current.tx_bytes)
        if rx_wrapped:
            self.wraparounds.append(
                CounterWraparound(f"{self.interface} rx_bytes", previous.rx_bytes, current.rx_bytes)
            )
        if tx_wrapped:
            self.wraparounds.append(
                CounterWraparound(f"{self.interface} tx_bytes", previous.tx_bytes, current.tx_bytes)
            )
        for wrap in self.wraparounds:
            log.info("%s", wrap)
        if elapsed <= 0:
            rx_rate = tx_rate = 0.0
        else:
            rx_rate = rx_delta / elapsed
            tx_rate = tx_delta / elapsed
        return (
            Metric(MetricId.NET_RX, rx_rate, now, FLAG_WRAPAROUND if rx_wrapped else None),
            Metric(MetricId.NET_TX, tx_rate, now, FLAG_WRAPAROUND if tx_wrapped else None),
        )

    # --- external tools ---

    def _run_tool(self, cmd, capability, timeout):
        if shutil.which(cmd[0]) is None:
            raise CapabilityUnavailable(capability)
        env = dict(os.environ, LC_ALL="C")
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=timeout, check=False, env=env
            )
        except FileNotFoundError as e:
            raise CapabilityUnavailable(capability) from e
        except subprocess.TimeoutExpired as e:
            raise SampleError(f"{cmd[0]} timed out") from e
        if result.returncode != 0:
            stderr_line = (
                result.stderr.strip().splitlines()[0]
                if result.stderr.strip()
                else f"ret_code={result.returncode}"
            )
            raise SampleError(f"{cmd[0]} failed ({stderr_line[:60]})")
        return result.stdout

    def disk_io(self) -> Tuple[Metric, List[DiskStat]]:
        # -y drops the since-boot report, so the one printed report covers the
        # last IOSTAT_SAMPLE_SECONDS only
        cmd = [self.iostat_cmd, "-dxy", str(IOSTAT_SAMPLE_SECONDS), "1"]
        output = self._run_tool(cmd, "iostat", IOSTAT_TIMEOUT)
        stats = parse_iostat(output)
        if not stats:
            raise SampleError("iostat reported no devices")
        total_kb = sum(s.read_kb_per_sec + s.write_kb_per_sec for s in stats)
        return Metric(MetricId.DISK_IO, total_kb * 1024, time.time()), stats

    def temperatures(self) -> List[SensorReading]:
        if hasattr(psutil, "sensors_temperatures"):
            try:
                temps = psutil.sensors_temperatures()
            except Exception as e:
                log.debug("sensors_temperatures failed: %s", e)
                temps = {}
            readings = [
                SensorReading(chip, entry.label or chip, entry.current, entry.high, entry.critical)
                for chip, entries in (temps or {}).items()
                for entry in entries
            ]
            if readings:
                return readings
        output = self._run_tool([self.sensors_cmd], "sensors", SENSORS_TIMEOUT)
        readings = parse_sensors(output)
        if not readings:
            raise CapabilityUnavailable("sensors", "no temperature sensors found")
        return readings
