"""
Per-key mutual exclusion and single-flight coalescing.
"""

import threading
from concurrent.futures import Future
from contextlib import contextmanager
from typing import Any, Callable, Dict, Hashable, Tuple


class KeyedLock:
    """A lock per key; entries are dropped once no thread holds or waits on them."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, list] = {}  # key -> [lock, refcount]

    @contextmanager
    def hold(self, key: Hashable):
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1

        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]


class SingleFlight:
    """
    Coalesce concurrent calls for the same key into one execution.

    The first caller for a key runs the function; callers arriving while it
    is in flight block and receive the same result (or exception).
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._calls: Dict[Hashable, Future] = {}

    def in_flight(self, key: Hashable) -> bool:
        with self._guard:
            return key in self._calls

    def do(self, key: Hashable, fn: Callable, *args, **kwargs) -> Tuple[Any, bool]:
        """
        Run fn once per key at a time.

        Returns:
            (result, shared) where shared is True if the result came from
            another caller's in-flight run
        """
        with self._guard:
            future = self._calls.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._calls[key] = future

        if not leader:
            return future.result(), True

        try:
            result = fn(*args, **kwargs)
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
        finally:
            with self._guard:
                del self._calls[key]

        return result, False
