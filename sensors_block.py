# sensors_block.py

import time

from metric_types import CapabilityUnavailable, Metric, MetricId, SampleError, SampleSet
from render import render_sensors, render_status
from scheduler import MetricGroup

INSTALL_HINT = "lm-sensors not installed: sudo apt install lm-sensors && sudo sensors-detect --auto"


class SensorsGroup(MetricGroup):
    title = "CPU / Sensors"

    def __init__(self, sampler, evaluator):
        super().__init__()
        self.sampler = sampler
        self.evaluator = evaluator
        self.last_readings = []
        self.unavailable = None

    def sample(self):
        samples = SampleSet()
        if self.unavailable is not None:
            samples.errors.append(self.unavailable)
            return samples
        try:
            readings = self.sampler.temperatures()
        except CapabilityUnavailable as e:
            self.unavailable = e
            samples.errors.append(e)
            return samples
        except SampleError as e:
            samples.errors.append(e)
            samples.entities = self.last_readings
            if MetricId.TEMPERATURE in self.last_good:
                samples.keep_last_good(self.last_good[MetricId.TEMPERATURE])
            return samples
        self.last_readings = readings
        samples.entities = readings
        if readings:
            hottest = max(r.current for r in readings)
            metric = Metric(MetricId.TEMPERATURE, hottest, time.time())
            self.last_good[MetricId.TEMPERATURE] = metric
            samples.metrics[MetricId.TEMPERATURE] = metric
        return samples

    def evaluate(self, samples):
        if MetricId.TEMPERATURE in samples.stale:
            return []
        return self.evaluator.evaluate(
            MetricId.TEMPERATURE,
            [(f"{r.chip}/{r.label}", r.current) for r in samples.entities],
        )

    def render(self, samples, alerts):
        if self.unavailable is not None:
            return render_status([INSTALL_HINT, "CPU sensors not available."])
        threshold = self.evaluator.store.get(MetricId.TEMPERATURE)
        text = render_sensors(samples.entities, threshold.limit if threshold else None)
        notes = [f"{e.subject} above {e.threshold:.0f}C" for e in alerts]
        notes += [f"no data this tick: {e}" for e in samples.errors]
        if notes:
            text += "\n\n" + render_status(notes)
        return text

    def reset(self):
        super().reset()
        self.last_readings = []
        self.unavailable = None
