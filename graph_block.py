# graph_block.py

import time

from history import HISTORY_LEN, HistoryRing
from metric_types import MetricId, SampleError, SampleSet
from render import render_alerts, render_cpu_mem_screen, render_status, render_top_processes
from scheduler import MetricGroup
from thresholds import TOP_N

CPU_SCALE = 2
MEM_SCALE = 2


class GraphGroup(MetricGroup):
    title = "ASCII CPU/RAM Graph"

    def __init__(self, sampler, evaluator, history_len=HISTORY_LEN,
                 cpu_scale=CPU_SCALE, mem_scale=MEM_SCALE, top_n=TOP_N,
                 interval=1.0, bar_width=None):
        super().__init__()
        self.sampler = sampler
        self.evaluator = evaluator
        self.cpu_history = HistoryRing(history_len, cpu_scale)
        self.mem_history = HistoryRing(history_len, mem_scale)
        self.top_n = top_n
        self.interval = interval
        self.bar_width = bar_width

    def sample(self):
        samples = SampleSet()
        self.guarded(samples, MetricId.CPU_PERCENT, self.sampler.cpu_percent)
        self.guarded(samples, MetricId.MEM_PERCENT, self.sampler.mem_percent)
        try:
            samples.entities = self.sampler.top_cpu_processes(self.top_n)
        except SampleError as e:
            samples.errors.append(e)
        return samples

    def record(self, samples):
        self.cpu_history.push(samples.metrics[MetricId.CPU_PERCENT].value)
        self.mem_history.push(samples.metrics[MetricId.MEM_PERCENT].value)

    def evaluate(self, samples):
        return self.evaluator.evaluate(MetricId.CPU_PERCENT, samples.entities)

    def render(self, samples, alerts):
        cpu = samples.metrics[MetricId.CPU_PERCENT]
        parts = [
            render_cpu_mem_screen(
                self.cpu_history,
                self.mem_history,
                self.cpu_history.scale,
                self.mem_history.scale,
                cpu.timestamp or time.time(),
                self.interval,
                self.bar_width,
            )
        ]
        if samples.entities:
            threshold = self.evaluator.store.get(MetricId.CPU_PERCENT)
            parts += [
                "",
                f"Top {len(samples.entities)} by CPU:",
                render_top_processes(samples.entities),
                "",
                render_alerts(alerts, threshold.limit if threshold else None),
            ]
        notes = []
        if cpu.degraded:
            notes.append("cpu sample degraded")
        notes += [f"no data this tick: {e}" for e in samples.errors]
        if notes:
            parts += ["", render_status(notes)]
        return "\n".join(parts)

    def reset(self):
        super().reset()
        self.cpu_history.clear()
        self.mem_history.clear()
