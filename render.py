# render.py
#
# Plain-text renderers. Nothing here touches curses; every function returns a
# string that any presentation layer can show.

from math import floor
from typing import List, Optional

from metric_types import AlertEvent, DiskStat, InvalidConfiguration, ProcessUsage, SensorReading
from utils import format_timestamp, format_value

KB = 1024
MB = 1024 * 1024
CPU_BAR_CHAR = "#"
MEM_BAR_CHAR = "*"
RATE_BAR_CHAR = "="


def render_rate(bytes_per_sec) -> str:
    value = max(0, bytes_per_sec)
    if value >= MB:
        return f"{value / MB:.2f} MB/s"
    if value >= KB:
        return f"{value / KB:.2f} KB/s"
    return f"{int(value)} B/s"


def bar_length(value, scale_divisor) -> int:
    return max(0, floor(value / scale_divisor))


def render_bargraph(values, scale_divisor, bar_char=CPU_BAR_CHAR, width=None,
                    unit="%", formatter=None) -> str:
    """One line per sample, oldest first: ``|<bars>| <value><unit>``.

    ``values`` is any iterable of numbers or a HistoryRing. Bars are
    ``floor(value / scale_divisor)`` characters, never negative, cut at
    ``width`` when a width is given.
    """
    if scale_divisor is None or scale_divisor <= 0:
        raise InvalidConfiguration("scale_divisor", scale_divisor, "must be > 0")
    if hasattr(values, "snapshot"):
        values = values.snapshot()
    values = list(values)
    if not values:
        return ""
    lengths = [bar_length(v, scale_divisor) for v in values]
    if width is not None:
        lengths = [min(width, n) for n in lengths]
        pad = width
    else:
        pad = max(lengths)
    if formatter is None:
        labels = [f"{format_value(v)}{unit}" for v in values]
    else:
        labels = [formatter(v) for v in values]
    label_w = max(len(label) for label in labels)
    lines = [
        f"|{bar_char * n:<{pad}}| {label:>{label_w}}"
        for n, label in zip(lengths, labels)
    ]
    return "\n".join(lines)


def render_cpu_mem_screen(cpu_values, mem_values, cpu_scale, mem_scale,
                          taken_at, interval=1.0, width=None) -> str:
    lines = [
        f"ASCII Live CPU / RAM Graph (updates every {format_value(interval)}s) - "
        f"{format_timestamp(taken_at)}",
        "",
        "CPU %:",
        render_bargraph(cpu_values, cpu_scale, CPU_BAR_CHAR, width),
        "",
        "MEM %:",
        render_bargraph(mem_values, mem_scale, MEM_BAR_CHAR, width),
    ]
    return "\n".join(lines)


def render_net_screen(interface, rx_rate, tx_rate, rx_values, tx_values,
                      rate_scale, taken_at, width=None) -> str:
    lines = [
        f"Interface: {interface}",
        f"Updated: {format_timestamp(taken_at)}",
        "",
        f"RX: {render_rate(rx_rate)}",
        f"TX: {render_rate(tx_rate)}",
    ]
    if len(rx_values):
        lines += [
            "",
            "RX history:",
            render_bargraph(rx_values, rate_scale, RATE_BAR_CHAR, width, formatter=render_rate),
            "",
            "TX history:",
            render_bargraph(tx_values, rate_scale, RATE_BAR_CHAR, width, formatter=render_rate),
        ]
    return "\n".join(lines)


def render_disk_table(stats: List[DiskStat], total_bytes_per_sec=None) -> str:
    header = f"{'Device':<12} {'r/s':>8} {'w/s':>8} {'rkB/s':>10} {'wkB/s':>10} {'%util':>7}"
    lines = [header]
    for s in stats:
        lines.append(
            f"{s.device[:12]:<12} {s.reads_per_sec:>8.2f} {s.writes_per_sec:>8.2f} "
            f"{s.read_kb_per_sec:>10.2f} {s.write_kb_per_sec:>10.2f} {s.util_percent:>7.2f}"
        )
    if total_bytes_per_sec is not None:
        lines.append("")
        lines.append(f"Total throughput: {render_rate(total_bytes_per_sec)}")
    return "\n".join(lines)


def render_top_processes(procs: List[ProcessUsage]) -> str:
    lines = [f"{'PID':>7} {'CPU%':>6}  NAME"]
    for p in procs:
        lines.append(f"{p.pid:>7} {p.cpu_percent:>6.1f}  {p.name}")
    return "\n".join(lines)


def render_alerts(events: List[AlertEvent], limit: Optional[float], what="CPU") -> str:
    if limit is None:
        return f"{what} alerts disabled."
    if not events:
        return f"No processes exceed {format_value(limit)}% {what} right now."
    lines = [f"Processes exceeding {format_value(limit)}% {what}:"]
    for e in events:
        lines.append(f"  {e.subject:<24} {format_value(e.value)}%")
    return "\n".join(lines)


def render_sensors(readings: List[SensorReading], limit: Optional[float] = None) -> str:
    lines = []
    chip = None
    for r in readings:
        if r.chip != chip:
            if lines:
                lines.append("")
            lines.append(r.chip)
            chip = r.chip
        extra = []
        if r.high is not None:
            extra.append(f"high = {r.high:+.1f}C")
        if r.critical is not None:
            extra.append(f"crit = {r.critical:+.1f}C")
        marker = " !" if limit is not None and r.current > limit else ""
        suffix = f"  ({', '.join(extra)})" if extra else ""
        lines.append(f"  {r.label[:20] + ':':<22} {r.current:+.1f}C{suffix}{marker}")
    return "\n".join(lines)


def render_status(notes: List[str]) -> str:
    return "\n".join(f"[{note}]" for note in notes)
