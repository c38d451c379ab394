from __future__ import annotations

from contextlib import contextmanager
from typing import Hashable, Iterator, Set, Tuple


class ResourceLockMap:
    """
    Advisory locks on (type, key) pairs, e.g. to avoid fetching the same remote resource twice.

    Non-reentrant and non-blocking: acquiring a held lock fails immediately.
    Nothing in the engine checks these locks; callers agree to use them.
    """

    def __init__(self) -> None:
        self._held: Set[Tuple[Hashable, Hashable]] = set()

    def acquire(self, resource_type: Hashable, key: Hashable) -> bool:
        """
        :return: True if the lock was free and is now held, False if it was already held
        """
        lock_key = (resource_type, key)
        if lock_key in self._held:
            return False
        self._held.add(lock_key)
        return True

    def release(self, resource_type: Hashable, key: Hashable) -> bool:
        """
        :return: True if a lock was released, False if there was none
        """
        lock_key = (resource_type, key)
        if lock_key not in self._held:
            return False
        self._held.remove(lock_key)
        return True

    def is_locked(self, resource_type: Hashable, key: Hashable) -> bool:
        return (resource_type, key) in self._held

    @contextmanager
    def hold(self, resource_type: Hashable, key: Hashable) -> Iterator[bool]:
        """
        Try to take the lock for the duration of the block.
        Yields whether it was obtained; only an obtained lock is released on exit.
        """
        acquired = self.acquire(resource_type, key)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(resource_type, key)

    def __len__(self) -> int:
        return len(self._held)
