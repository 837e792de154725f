# thresholds.py

import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from metric_types import (
    FLAG_FIRST_SAMPLE,
    AlertEvent,
    InvalidConfiguration,
    Metric,
    MetricId,
    ProcessUsage,
)

CPU_THRESHOLD = 80.0
TOP_N = 5


@dataclass(frozen=True)
class Threshold:
    metric_id: MetricId
    limit: float

    def exceeds(self, value) -> bool:
        return value > self.limit


def parse_limit(metric_id, raw) -> float:
    if isinstance(raw, bool):
        raise InvalidConfiguration(metric_id.value, raw, "not a number")
    try:
        limit = float(str(raw).strip())
    except ValueError:
        raise InvalidConfiguration(metric_id.value, raw, "not a number")
    if limit != limit or limit < 0:
        raise InvalidConfiguration(metric_id.value, raw, "must be >= 0")
    return limit


class ThresholdStore:
    """One Threshold per alert type; each update swaps in a new snapshot."""

    def __init__(self, limits: Optional[Dict[MetricId, float]] = None):
        self._lock = threading.Lock()
        self._thresholds: Dict[MetricId, Threshold] = {}
        for metric_id, limit in (limits or {}).items():
            self._thresholds[metric_id] = Threshold(metric_id, parse_limit(metric_id, limit))

    def get(self, metric_id) -> Optional[Threshold]:
        with self._lock:
            return self._thresholds.get(metric_id)

    def set_limit(self, metric_id, raw) -> Threshold:
        limit = parse_limit(metric_id, raw)
        new = Threshold(metric_id, limit)
        with self._lock:
            self._thresholds = {**self._thresholds, metric_id: new}
        return new

    def clear(self, metric_id):
        with self._lock:
            remaining = dict(self._thresholds)
            remaining.pop(metric_id, None)
            self._thresholds = remaining


def _subject_and_value(sample):
    if isinstance(sample, ProcessUsage):
        return sample.subject, sample.cpu_percent
    if isinstance(sample, Metric):
        return "", sample.value
    subject, value = sample
    return str(subject), value


class ThresholdEvaluator:
    def __init__(self, store: ThresholdStore):
        self.store = store

    def evaluate(self, metric_id, samples) -> List[AlertEvent]:
        threshold = self.store.get(metric_id)
        if threshold is None:
            return []
        now = time.time()
        events = []
        for sample in samples:
            if isinstance(sample, Metric) and sample.flag == FLAG_FIRST_SAMPLE:
                continue
            subject, value = _subject_and_value(sample)
            if threshold.exceeds(value):
                events.append(AlertEvent(metric_id, value, threshold.limit, now, subject))
        return events

    def evaluate_metric(self, metric: Metric) -> List[AlertEvent]:
        return self.evaluate(metric.metric_id, [metric])
