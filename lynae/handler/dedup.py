"""At-most-once bookkeeping for dispatched messages."""

from collections import OrderedDict


class ProcessedMessageSet:
    """Bounded FIFO set of ``chat_message`` keys; the oldest key is evicted first."""

    def __init__(self, capacity: int = 1000):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._keys: OrderedDict[str, None] = OrderedDict()

    def __contains__(self, key: str) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self):
        return iter(self._keys)

    def check_and_add(self, key: str) -> bool:
        """Record ``key``; return False when it was already seen."""
        if key in self._keys:
            return False
        self._keys[key] = None
        while len(self._keys) > self.capacity:
            self._keys.popitem(last=False)
        return True
