import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Hashable, Iterator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def configure_logging(level: str = "INFO") -> None:
    """
    Sets up root logging once. Uvicorn installs its own handlers, so this only
    adds one when nothing is configured yet.
    """
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    root.setLevel(level)


class KeyedLocks:
    """
    One lock per key, e.g. per group id, so edits to the same group run one at
    a time. A key's lock is dropped once nobody holds or waits for it, so ids
    of deleted groups do not pile up.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        # key -> [lock, number of holders and waiters]
        self._locks: dict[Hashable, list] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]
