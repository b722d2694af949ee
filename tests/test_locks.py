"""Tests for per-common-name locks."""

import threading

from authority.repository.locks import CommonNameLocks


class TestCommonNameLocks:
    def test_same_name_same_lock(self):
        locks = CommonNameLocks()

        assert locks.get("root.test") is locks.get("root.test")
        assert locks.get("root.test") is not locks.get("other.test")

    def test_hold_is_reentrant(self):
        locks = CommonNameLocks()

        with locks.hold("root.test"):
            with locks.hold("root.test"):
                pass

    def test_hold_excludes_other_threads(self):
        """A second thread cannot take the lock while it is held."""
        locks = CommonNameLocks()
        acquired = []

        def worker():
            acquired.append(locks.get("root.test").acquire(blocking=False))

        with locks.hold("root.test"):
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()

        assert acquired == [False]
