"""
In-memory transactional key-value store.

Optimistic concurrency: each transaction reads at a read version and
commits only if none of the keys it read were written after that version.
Used for simulated runs and tests; transient errors can be injected to
exercise retry loops.
"""

import asyncio
from collections import deque

from attrition_engine.errors import NotCommittedError, TransactionError
from attrition_engine.interfaces import KeyValueStore, Transaction, TransactionOption
from attrition_engine.logging import get_logger

logger = get_logger(__name__)

INITIAL_BACKOFF_S = 0.01
MAX_BACKOFF_S = 1.0


class InMemoryTransaction(Transaction):
    """Transaction against an InMemoryStore."""

    def __init__(self, store: "InMemoryStore") -> None:
        self._store = store
        self._backoff = store.initial_backoff
        self.options: set[TransactionOption] = set()
        self.retries = 0
        self._reset()

    def _reset(self) -> None:
        self._read_version: int | None = None
        self._read_keys: set[bytes] = set()
        self._writes: dict[bytes, bytes | None] = {}

    def set_option(self, option: TransactionOption) -> None:
        self.options.add(option)

    async def get_read_version(self) -> int:
        if self._read_version is None:
            self._read_version = await self._store._acquire_read_version()
        return self._read_version

    async def get(self, key: bytes) -> bytes | None:
        await self.get_read_version()
        self._read_keys.add(key)
        if key in self._writes:
            return self._writes[key]
        return self._store._data.get(key)

    def set(self, key: bytes, value: bytes) -> None:
        self._writes[key] = value

    def clear(self, key: bytes) -> None:
        self._writes[key] = None

    async def commit(self) -> int:
        read_version = await self.get_read_version()
        version = await self._store._commit(read_version, self._read_keys, self._writes)
        self._reset()
        return version

    async def on_error(self, error: BaseException) -> None:
        if not isinstance(error, TransactionError) or not error.retryable:
            raise error
        logger.debug("Retrying transaction after %s in %.3fs", error, self._backoff)
        await asyncio.sleep(self._backoff)
        self._backoff = min(self._backoff * 2, self._store.max_backoff)
        self.retries += 1
        self._reset()


class InMemoryStore(KeyValueStore):
    """
    Versioned dictionary with conflict detection.

    Reads see the latest committed value; conflicts are detected at commit
    time against the read version.
    """

    def __init__(
        self,
        initial_backoff: float = INITIAL_BACKOFF_S,
        max_backoff: float = MAX_BACKOFF_S,
    ) -> None:
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self._data: dict[bytes, bytes] = {}
        self._last_write: dict[bytes, int] = {}
        self._version = 0
        self._pending_errors: deque[TransactionError] = deque()
        self.commit_count = 0
        self.read_version_count = 0

    @property
    def version(self) -> int:
        return self._version

    def create_transaction(self) -> InMemoryTransaction:
        return InMemoryTransaction(self)

    def inject_errors(self, *errors: TransactionError) -> None:
        """Make the next read-version or commit calls fail, in order."""
        self._pending_errors.extend(errors)

    def peek(self, key: bytes) -> bytes | None:
        """Read the latest committed value outside any transaction."""
        return self._data.get(key)

    def _raise_injected(self) -> None:
        if self._pending_errors:
            raise self._pending_errors.popleft()

    async def _acquire_read_version(self) -> int:
        await asyncio.sleep(0)
        self._raise_injected()
        self.read_version_count += 1
        return self._version

    async def _commit(
        self,
        read_version: int,
        read_keys: set[bytes],
        writes: dict[bytes, bytes | None],
    ) -> int:
        await asyncio.sleep(0)
        self._raise_injected()
        for key in read_keys:
            if self._last_write.get(key, 0) > read_version:
                raise NotCommittedError(f"Conflict on key {key!r}")
        if not writes:
            return read_version

        self._version += 1
        for key, value in writes.items():
            if value is None:
                self._data.pop(key, None)
            else:
                self._data[key] = value
            self._last_write[key] = self._version
        self.commit_count += 1
        return self._version
