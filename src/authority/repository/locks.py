"""Caller-side mutual exclusion per common name.

The store and the CertificateAuthority take no locks. Processes that run
concurrent create/issue/revoke calls against the same CA hold the lock for
that CA's common name around each call.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class CommonNameLocks:
    """One re-entrant lock per common name, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def get(self, common_name: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(common_name)
            if lock is None:
                lock = self._locks[common_name] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, common_name: str) -> Iterator[None]:
        """Hold the lock for ``common_name`` for the duration of the block."""
        with self.get(common_name):
            yield
