import copy
import threading
import time


class ViewCache:
    """Per-owner cache of rendered view data (habit lists, summaries).

    Mutations call invalidate(owner) so the next read goes back to the store.
    """

    def __init__(self, ttl=60):
        self.ttl = ttl
        self._items = {}
        self._lock = threading.Lock()

    def get(self, owner, key):
        if not self.ttl:
            return None
        with self._lock:
            item = self._items.get((owner, key))
            if item is None:
                return None
            stored_at, value = item
            if time.monotonic() - stored_at >= self.ttl:
                del self._items[(owner, key)]
                return None
            return copy.deepcopy(value)

    def set(self, owner, key, value):
        if not self.ttl:
            return
        with self._lock:
            self._items[(owner, key)] = (time.monotonic(), copy.deepcopy(value))

    def invalidate(self, owner):
        with self._lock:
            for cache_key in [k for k in self._items if k[0] == owner]:
                del self._items[cache_key]
