import pytest

from metric_types import (
    AlertEvent,
    CapabilityUnavailable,
    FLAG_DEGRADED,
    InvalidConfiguration,
    Metric,
    MetricId,
    SampleError,
    SampleSet,
)
from scheduler import CancelToken, LoopState, MetricGroup, SchedulerLoop


def no_wait(cancel, timeout):
    pass


class RecordingGroup(MetricGroup):
    title = "recording"

    def __init__(self, steps, errors_per_tick=None, alerts=None, on_step=None):
        super().__init__()
        self.steps = steps
        self.errors_per_tick = list(errors_per_tick or [])
        self.alerts = alerts or []
        self.on_step = on_step or {}
        self.resets = 0

    def _step(self, name):
        self.steps.append(name)
        hook = self.on_step.get(name)
        if hook:
            hook()

    def sample(self):
        self._step("sample")
        samples = SampleSet()
        if self.errors_per_tick:
            samples.errors.extend(self.errors_per_tick.pop(0))
        return samples

    def record(self, samples):
        self._step("record")

    def evaluate(self, samples):
        self._step("evaluate")
        return list(self.alerts)

    def render(self, samples, alerts):
        self._step("render")
        return f"tick text ({len(self.steps)})"

    def reset(self):
        super().reset()
        self.resets += 1


@pytest.mark.parametrize("cancel_during", ["sample", "record", "evaluate", "render"])
def test_cancel_mid_tick_finishes_the_tick(cancel_during):
    steps = []
    token = CancelToken()
    group = RecordingGroup(steps, on_step={cancel_during: token.cancel})
    delivered = []

    def deliver(result):
        steps.append("deliver")
        delivered.append(result)

    loop = SchedulerLoop(group, deliver, wait=no_wait)
    loop.run(token)

    assert steps == ["sample", "record", "evaluate", "render", "deliver"]
    assert len(delivered) == 1 and delivered[0].text
    assert loop.state is LoopState.STOPPED


def test_cancel_during_wait_stops_before_next_tick():
    steps = []
    token = CancelToken()

    def wait(cancel, timeout):
        cancel.cancel()

    loop = SchedulerLoop(RecordingGroup(steps), lambda r: steps.append("deliver"), wait=wait)
    loop.run(token)
    assert steps.count("sample") == 1
    assert loop.ticks == 1


def test_states_and_max_ticks():
    results = []
    loop = SchedulerLoop(RecordingGroup([]), results.append, wait=no_wait)
    assert loop.state is LoopState.IDLE
    loop.run(CancelToken(), max_ticks=3)
    assert [r.tick for r in results] == [1, 2, 3]
    assert loop.state is LoopState.STOPPED


def test_loop_cannot_be_restarted():
    loop = SchedulerLoop(RecordingGroup([]), lambda r: None, wait=no_wait)
    loop.run(CancelToken(), max_ticks=1)
    with pytest.raises(RuntimeError):
        loop.run(CancelToken(), max_ticks=1)


def test_default_wait_uses_interval():
    results = []
    loop = SchedulerLoop(RecordingGroup([]), results.append, interval=0.01)
    loop.run(CancelToken(), max_ticks=2)
    assert len(results) == 2


@pytest.mark.parametrize("interval", [0, -1, None])
def test_rejects_bad_interval(interval):
    with pytest.raises(InvalidConfiguration):
        SchedulerLoop(RecordingGroup([]), lambda r: None, interval=interval)


def test_failure_surfaced_once_per_streak():
    err = SampleError("counter file unreadable")
    missing = CapabilityUnavailable("iostat")
    group = RecordingGroup(
        [],
        errors_per_tick=[[err], [err], [err, missing], [missing], [], [err]],
    )
    reported = []
    results = []
    loop = SchedulerLoop(group, results.append, on_error=reported.append, wait=no_wait)
    loop.run(CancelToken(), max_ticks=6)

    assert reported == [err, missing, err]
    assert [len(r.errors) for r in results] == [1, 1, 2, 1, 0, 1]
    assert [len(r.fresh_errors) for r in results] == [1, 0, 1, 0, 0, 1]


def test_alerts_handed_to_sink_once_per_tick():
    event = AlertEvent(MetricId.CPU_PERCENT, 95.0, 80.0, 0.0, "1 init")
    sink = []
    loop = SchedulerLoop(RecordingGroup([], alerts=[event]), lambda r: None,
                         on_alert=sink.append, wait=no_wait)
    loop.run(CancelToken(), max_ticks=2)
    assert sink == [event, event]


def test_group_reset_on_stop_is_configurable():
    group = RecordingGroup([])
    SchedulerLoop(group, lambda r: None, wait=no_wait).run(CancelToken(), max_ticks=1)
    assert group.resets == 1

    kept = RecordingGroup([])
    SchedulerLoop(kept, lambda r: None, wait=no_wait, reset_on_stop=False).run(
        CancelToken(), max_ticks=1
    )
    assert kept.resets == 0


def test_guarded_falls_back_to_last_good_value():
    group = MetricGroup()
    good = Metric(MetricId.MEM_PERCENT, 42, 1.0)

    first = SampleSet()
    assert group.guarded(first, MetricId.MEM_PERCENT, lambda: good) is good
    assert first.errors == []

    def failing():
        raise SampleError("meminfo gone")

    second = SampleSet()
    assert group.guarded(second, MetricId.MEM_PERCENT, failing) is good
    assert second.metrics[MetricId.MEM_PERCENT] is good
    assert second.stale == {MetricId.MEM_PERCENT}
    assert second.fresh_metrics() == []
    assert len(second.errors) == 1


def test_guarded_without_history_reports_zero():
    group = MetricGroup()

    def failing():
        raise SampleError("nothing yet")

    samples = SampleSet()
    metric = group.guarded(samples, MetricId.CPU_PERCENT, failing)
    assert metric.value == 0
    assert metric.flag == FLAG_DEGRADED
    assert MetricId.CPU_PERCENT in samples.stale


def test_cancel_token():
    token = CancelToken()
    assert not token.cancelled
    assert token.wait(0) is False
    token.cancel()
    assert token.cancelled
    assert token.wait(10) is True
