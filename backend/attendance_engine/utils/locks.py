"""Per-key mutual exclusion.

Serializes writers that share a logical key (an instructor, or a
session/student pair) without blocking unrelated keys.
"""
import threading
from contextlib import contextmanager
from typing import Dict


class KeyedLock:
    """In-process lock table keyed by string."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}
        self._refs: Dict[str, int] = {}

    @contextmanager
    def hold(self, key: str):
        with self._guard:
            lock = self._locks.setdefault(key, threading.RLock())
            self._refs[key] = self._refs.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._refs[key] -= 1
                if self._refs[key] == 0:
                    del self._refs[key]
                    del self._locks[key]


class RedisKeyedLock:
    """Distributed variant for multi-process deployments."""

    def __init__(self, client, prefix: str = 'attendance:lock:', timeout: int = 10,
                 blocking_timeout: int = 15):
        self.client = client
        self.prefix = prefix
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout

    @contextmanager
    def hold(self, key: str):
        lock = self.client.lock(
            f'{self.prefix}{key}',
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout
        )
        if not lock.acquire():
            raise TimeoutError(f'Could not acquire lock for {key}')
        try:
            yield
        finally:
            lock.release()
