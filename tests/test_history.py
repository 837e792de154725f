import pytest

from history import HISTORY_LEN, HistoryRing
from metric_types import InvalidConfiguration


def test_snapshot_grows_until_capacity():
    ring = HistoryRing(5)
    for v in (3, 1, 2):
        ring.push(v)
    assert len(ring) == 3
    assert ring.snapshot() == [3, 1, 2]


@pytest.mark.parametrize("pushes", [6, 11, 40, 97])
def test_snapshot_keeps_last_capacity_values_in_order(pushes):
    ring = HistoryRing(5)
    values = list(range(pushes))
    for v in values:
        ring.push(v)
    assert len(ring) == 5
    assert ring.snapshot() == values[-5:]


def test_exactly_full_ring():
    ring = HistoryRing(3)
    for v in (7, 8, 9):
        ring.push(v)
    assert ring.snapshot() == [7, 8, 9]
    ring.push(10)
    assert ring.snapshot() == [8, 9, 10]


def test_latest_and_clear():
    ring = HistoryRing(2)
    assert ring.latest() is None
    ring.push(1.5)
    ring.push(2.5)
    ring.push(3.5)
    assert ring.latest() == 3.5
    ring.clear()
    assert len(ring) == 0
    assert ring.snapshot() == []
    ring.push(4)
    assert ring.snapshot() == [4]


def test_default_capacity_and_scale():
    ring = HistoryRing(scale=4)
    assert ring.capacity == HISTORY_LEN == 40
    assert ring.scale == 4


@pytest.mark.parametrize("capacity", [0, -1, 2.5, "10"])
def test_rejects_bad_capacity(capacity):
    with pytest.raises(InvalidConfiguration):
        HistoryRing(capacity)
