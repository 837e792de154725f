# scheduler.py

import enum
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from metric_types import (
    FLAG_DEGRADED,
    AlertEvent,
    InvalidConfiguration,
    Metric,
    SampleError,
    SampleSet,
)

log = logging.getLogger(__name__)

UPDATE_INTERVAL = 1.0


class LoopState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class CancelToken:
    """Cooperative stop request, only looked at between ticks."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout) -> bool:
        return self._event.wait(timeout)


@dataclass
class TickResult:
    tick: int
    text: str
    alerts: List[AlertEvent] = field(default_factory=list)
    errors: List[Exception] = field(default_factory=list)
    fresh_errors: List[Exception] = field(default_factory=list)


class MetricGroup:
    """Base for the per-screen metric groups.

    Subclasses own their history rings and counter caches; a group is never
    shared between two loops.
    """

    title = ""

    def __init__(self):
        self.last_good = {}

    def guarded(self, samples: SampleSet, metric_id, read: Callable[[], Metric]):
        """Runs one sampler read, falling back to the last good value."""
        try:
            metric = read()
        except SampleError as e:
            samples.errors.append(e)
            metric = self.last_good.get(metric_id) or Metric(metric_id, 0, time.time(), FLAG_DEGRADED)
            samples.keep_last_good(metric)
            return metric
        self.last_good[metric_id] = metric
        samples.metrics[metric_id] = metric
        return metric

    def sample(self) -> SampleSet:
        raise NotImplementedError

    def record(self, samples: SampleSet):
        pass

    def evaluate(self, samples: SampleSet) -> List[AlertEvent]:
        return []

    def render(self, samples: SampleSet, alerts: List[AlertEvent]) -> str:
        raise NotImplementedError

    def reset(self):
        self.last_good = {}


def _error_key(error):
    return (
        type(error).__name__,
        getattr(error, "capability", None) or getattr(error, "name", None),
    )


def _default_wait(cancel: CancelToken, timeout):
    cancel.wait(timeout)


class SchedulerLoop:
    def __init__(self, group: MetricGroup, deliver: Callable[[TickResult], None],
                 interval=UPDATE_INTERVAL, on_error=None, on_alert=None,
                 wait=None, reset_on_stop=True):
        if not interval or interval <= 0:
            raise InvalidConfiguration("interval", interval, "must be > 0")
        self.group = group
        self.deliver = deliver
        self.interval = interval
        self.on_error = on_error
        self.on_alert = on_alert
        self.wait = wait or _default_wait
        self.reset_on_stop = reset_on_stop
        self.state = LoopState.IDLE
        self.ticks = 0
        self._active_errors = set()

    def tick(self) -> TickResult:
        group = self.group
        samples = group.sample()
        group.record(samples)
        alerts = group.evaluate(samples)
        text = group.render(samples, alerts)
        self.ticks += 1

        keys = {_error_key(e): e for e in samples.errors}
        fresh = [e for k, e in keys.items() if k not in self._active_errors]
        self._active_errors = set(keys)
        result = TickResult(self.ticks, text, alerts, list(samples.errors), fresh)

        self.deliver(result)
        for error in fresh:
            log.warning("%s: %s", group.title or type(group).__name__, error)
            if self.on_error:
                self.on_error(error)
        if self.on_alert:
            for event in alerts:
                self.on_alert(event)
        return result

    def run(self, cancel: CancelToken, max_ticks: Optional[int] = None):
        if self.state is not LoopState.IDLE:
            raise RuntimeError(f"loop already {self.state.value}")
        self.state = LoopState.RUNNING
        log.debug("loop started: %s", self.group.title)
        try:
            while True:
                started = time.monotonic()
                self.tick()
                if cancel.cancelled:
                    break
                if max_ticks is not None and self.ticks >= max_ticks:
                    break
                remaining = self.interval - (time.monotonic() - started)
                self.wait(cancel, max(0.0, remaining))
                if cancel.cancelled:
                    break
        finally:
            self.state = LoopState.STOPPED
            if self.reset_on_stop:
                self.group.reset()
            log.debug("loop stopped after %d ticks: %s", self.ticks, self.group.title)
