# disk_block.py

from history import HISTORY_LEN, HistoryRing
from metric_types import CapabilityUnavailable, Metric, MetricId, SampleError, SampleSet
from render import RATE_BAR_CHAR, render_bargraph, render_disk_table, render_rate, render_status
from scheduler import MetricGroup
from utils import timestamp

RATE_SCALE = 1024 * 1024
INSTALL_HINT = "iostat (sysstat) not installed: sudo apt install sysstat"


class DiskGroup(MetricGroup):
    title = "Disk I/O (iostat)"

    def __init__(self, sampler, evaluator, history_len=HISTORY_LEN,
                 rate_scale=RATE_SCALE, bar_width=None):
        super().__init__()
        self.rate_scale = rate_scale
        self.bar_width = bar_width
        self.sampler = sampler
        self.evaluator = evaluator
        self.history = HistoryRing(history_len)
        self.last_stats = []
        self.unavailable = None

    def sample(self):
        samples = SampleSet()
        if self.unavailable is not None:
            # iostat was missing once, skip the metric instead of probing every tick
            samples.errors.append(self.unavailable)
            return samples
        try:
            metric, stats = self.sampler.disk_io()
        except CapabilityUnavailable as e:
            self.unavailable = e
            samples.errors.append(e)
            return samples
        except SampleError as e:
            samples.errors.append(e)
            previous = self.last_good.get(MetricId.DISK_IO)
            if previous is not None:
                samples.keep_last_good(previous)
                samples.entities = self.last_stats
            return samples
        self.last_good[MetricId.DISK_IO] = metric
        self.last_stats = stats
        samples.metrics[MetricId.DISK_IO] = metric
        samples.entities = stats
        return samples

    def record(self, samples):
        metric = samples.metrics.get(MetricId.DISK_IO)
        if metric is not None:
            self.history.push(metric.value)

    def evaluate(self, samples):
        alerts = []
        for metric in samples.fresh_metrics():
            alerts += self.evaluator.evaluate_metric(metric)
        return alerts

    def render(self, samples, alerts):
        metric: Metric = samples.metrics.get(MetricId.DISK_IO)
        if self.unavailable is not None:
            return render_status([INSTALL_HINT, "Disk I/O monitor unavailable without sysstat."])
        parts = [f"Updated: {timestamp()}", ""]
        if metric is not None:
            parts.append(render_disk_table(samples.entities, metric.value))
            parts += [
                "",
                "Throughput history:",
                render_bargraph(self.history, self.rate_scale, RATE_BAR_CHAR,
                                self.bar_width, formatter=render_rate),
            ]
        notes = [f"throughput above limit: {e.value:.0f} B/s" for e in alerts]
        notes += [f"no data this tick: {e}" for e in samples.errors]
        if notes:
            parts += ["", render_status(notes)]
        return "\n".join(parts)

    def reset(self):
        super().reset()
        self.history.clear()
        self.last_stats = []
        self.unavailable = None
