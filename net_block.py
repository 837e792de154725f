# net_block.py

import time

from history import HISTORY_LEN, HistoryRing
from metric_types import MetricId, SampleError, SampleSet
from render import render_net_screen, render_status
from scheduler import MetricGroup

RATE_SCALE = 100 * 1024


class NetworkGroup(MetricGroup):
    title = "Network Speed Monitor"

    def __init__(self, sampler, evaluator, interface, history_len=HISTORY_LEN,
                 rate_scale=RATE_SCALE, bar_width=None):
        super().__init__()
        self.sampler = sampler
        self.evaluator = evaluator
        self.sampler.select_interface(interface)
        self.interface = interface
        self.rx_history = HistoryRing(history_len, rate_scale)
        self.tx_history = HistoryRing(history_len, rate_scale)
        self.rate_scale = rate_scale
        self.bar_width = bar_width

    def sample(self):
        samples = SampleSet()
        try:
            rx, tx = self.sampler.net_rates()
        except SampleError as e:
            samples.errors.append(e)
            for metric_id in (MetricId.NET_RX, MetricId.NET_TX):
                if metric_id in self.last_good:
                    samples.keep_last_good(self.last_good[metric_id])
            return samples
        samples.errors.extend(self.sampler.wraparounds)
        for metric in (rx, tx):
            self.last_good[metric.metric_id] = metric
            samples.metrics[metric.metric_id] = metric
        return samples

    def record(self, samples):
        rx = samples.metrics.get(MetricId.NET_RX)
        tx = samples.metrics.get(MetricId.NET_TX)
        self.rx_history.push(rx.value if rx else 0)
        self.tx_history.push(tx.value if tx else 0)

    def evaluate(self, samples):
        alerts = []
        for metric in samples.fresh_metrics():
            alerts += self.evaluator.evaluate_metric(metric)
        return alerts

    def render(self, samples, alerts):
        rx = samples.metrics.get(MetricId.NET_RX)
        tx = samples.metrics.get(MetricId.NET_TX)
        taken_at = rx.timestamp if rx else time.time()
        text = render_net_screen(
            self.interface,
            rx.value if rx else 0,
            tx.value if tx else 0,
            self.rx_history,
            self.tx_history,
            self.rate_scale,
            taken_at,
            self.bar_width,
        )
        notes = [f"{e.metric_id.value} above {e.threshold:.0f} B/s" for e in alerts]
        notes += [f"no data this tick: {e}" for e in samples.errors]
        if notes:
            text += "\n\n" + render_status(notes)
        return text

    def reset(self):
        super().reset()
        self.sampler.previous_counters = None
        self.rx_history.clear()
        self.tx_history.clear()
