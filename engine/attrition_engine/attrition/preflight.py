"""
Fresh-read gate.

Proves the system under test was serving reads immediately before a kill,
so any unavailability observed afterwards can be attributed to the kill.
"""

from attrition_engine.interfaces import KeyValueStore, TransactionOption


async def wait_for_read_version(store: KeyValueStore) -> int:
    """
    Acquire a read version at system-immediate priority, lock-aware.

    Retries through Transaction.on_error until one succeeds.

    Returns:
        The acquired read version
    """
    tr = store.create_transaction()
    while True:
        try:
            tr.set_option(TransactionOption.PRIORITY_SYSTEM_IMMEDIATE)
            tr.set_option(TransactionOption.LOCK_AWARE)
            return await tr.get_read_version()
        except Exception as e:
            await tr.on_error(e)
