"""
Transactional key-value store interface.

The attrition engine never decides on its own how to back off after a
conflict. Every retry loop follows the same shape:

    tr = store.create_transaction()
    while True:
        try:
            ...
            await tr.commit()
            break
        except Exception as e:
            await tr.on_error(e)

on_error sleeps according to the store's policy and resets the transaction
for retryable errors, and re-raises everything else.
"""

from abc import ABC, abstractmethod
from enum import Enum


class TransactionOption(str, Enum):
    """Options understood by transactions."""

    LOCK_AWARE = "lock_aware"
    PRIORITY_SYSTEM_IMMEDIATE = "priority_system_immediate"


class Transaction(ABC):
    """A single optimistic transaction."""

    @abstractmethod
    def set_option(self, option: TransactionOption) -> None:
        """Enable a transaction option. Options survive on_error resets."""
        pass

    @abstractmethod
    async def get_read_version(self) -> int:
        """Acquire (or return the cached) read version."""
        pass

    @abstractmethod
    async def get(self, key: bytes) -> bytes | None:
        """Read a key at the transaction's read version."""
        pass

    @abstractmethod
    def set(self, key: bytes, value: bytes) -> None:
        """Buffer a write."""
        pass

    @abstractmethod
    def clear(self, key: bytes) -> None:
        """Buffer a delete."""
        pass

    @abstractmethod
    async def commit(self) -> int:
        """
        Commit buffered writes.

        Returns:
            Commit version
        """
        pass

    @abstractmethod
    async def on_error(self, error: BaseException) -> None:
        """
        Handle an error raised by this transaction.

        Backs off and resets the transaction when the error is retryable,
        otherwise re-raises it.
        """
        pass


class KeyValueStore(ABC):
    """Factory for transactions against the system under test."""

    @abstractmethod
    def create_transaction(self) -> Transaction:
        pass
