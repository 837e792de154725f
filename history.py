# history.py

from metric_types import InvalidConfiguration

HISTORY_LEN = 40


class HistoryRing:
    """Fixed-capacity rolling buffer of samples, oldest evicted first.

    Storage is allocated once; push() only moves the head index.
    """

    def __init__(self, capacity=HISTORY_LEN, scale=1):
        if not isinstance(capacity, int) or capacity < 1:
            raise InvalidConfiguration("history_len", capacity, "must be a positive integer")
        self._capacity = capacity
        self._values = [0] * capacity
        self._head = 0
        self._size = 0
        self.scale = scale

    @property
    def capacity(self):
        return self._capacity

    def __len__(self):
        return self._size

    def push(self, value):
        self._values[self._head] = value
        self._head = (self._head + 1) % self._capacity
        if self._size < self._capacity:
            self._size += 1

    def snapshot(self):
        start = (self._head - self._size) % self._capacity
        return [self._values[(start + i) % self._capacity] for i in range(self._size)]

    def latest(self):
        if self._size == 0:
            return None
        return self._values[(self._head - 1) % self._capacity]

    def clear(self):
        self._head = 0
        self._size = 0
