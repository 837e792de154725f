import time
from types import SimpleNamespace

import pytest

from metric_types import Metric, MetricId, SampleError


class FakeClock:
    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeSampler:
    """Sampler stand-in fed from lists; an Exception in a list is raised."""

    def __init__(self, cpu=(), mem=(), top=(), disk=(), temps=()):
        self.cpu = list(cpu)
        self.mem = list(mem)
        self.top = list(top)
        self.disk = list(disk)
        self.temps = list(temps)
        self.calls = []

    @staticmethod
    def _next(queue):
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def cpu_percent(self):
        self.calls.append("cpu")
        return Metric(MetricId.CPU_PERCENT, self._next(self.cpu), time.time())

    def mem_percent(self):
        self.calls.append("mem")
        return Metric(MetricId.MEM_PERCENT, self._next(self.mem), time.time())

    def top_cpu_processes(self, n=5):
        self.calls.append("top")
        return self._next(self.top)[:n] if self.top else []

    def disk_io(self):
        self.calls.append("disk")
        return self._next(self.disk)

    def temperatures(self):
        self.calls.append("temps")
        return self._next(self.temps)


class FakeNetCounters:
    """Stands in for psutil.net_io_counters(pernic=True)."""

    def __init__(self):
        self.nics = {}
        self.error = None

    def set(self, name, rx, tx):
        self.nics[name] = SimpleNamespace(bytes_recv=rx, bytes_sent=tx)

    def drop(self, name):
        del self.nics[name]

    def __call__(self):
        if self.error is not None:
            raise self.error
        return dict(self.nics)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def net_counters():
    counters = FakeNetCounters()
    counters.set("lo", 0, 0)
    counters.set("eth0", 1000, 500)
    return counters


@pytest.fixture
def sample_error():
    return SampleError("source went away")
