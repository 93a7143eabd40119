# ring_buffer.py
#
# Fixed-capacity circular buffer holding the receiver's recent detections.
# Each entry is a (symbol, timestamp) pair so that index i always refers to
# a single detection event.

from collections import namedtuple

Detection = namedtuple("Detection", ["symbol", "timestamp"])


class HistoryBuffer:
    """Circular buffer that overwrites its oldest entry when full."""

    def __init__(self, capacity):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._items = [None] * capacity
        self._start = 0
        self._length = 0

    def __len__(self):
        return self._length

    def __iter__(self):
        for i in range(self._length):
            yield self.get(i)

    def __repr__(self):
        return f"HistoryBuffer({list(self)!r}, capacity={self.capacity})"

    def length(self):
        return self._length

    def add(self, value):
        end = (self._start + self._length) % self.capacity
        self._items[end] = value
        if self._length < self.capacity:
            self._length += 1
        else:
            self._start = (self._start + 1) % self.capacity

    def get(self, index):
        """Returns the entry ``index`` positions after the oldest one."""
        if index < 0:
            index += self._length
        if not 0 <= index < self._length:
            raise IndexError(f"index {index} out of range for buffer of length {self._length}")
        return self._items[(self._start + index) % self.capacity]

    def last(self):
        """Most recent entry, or None when the buffer is empty."""
        if self._length == 0:
            return None
        return self.get(self._length - 1)

    def remove_range(self, start, count):
        """Removes ``count`` entries starting ``start`` positions after the oldest."""
        if start < 0 or count < 0 or start + count > self._length:
            raise IndexError(
                f"cannot remove {count} entries at {start} from buffer of length {self._length}")
        if count == 0:
            return
        kept = [self.get(i) for i in range(self._length) if not start <= i < start + count]
        self.clear()
        for item in kept:
            self.add(item)

    def clear(self):
        self._items = [None] * self.capacity
        self._start = 0
        self._length = 0
