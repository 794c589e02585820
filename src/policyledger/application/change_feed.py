"""Per-contract change channel used to keep live views current.

Mutations publish a bare "changed" event for a contract number; each subscriber
re-reads and receives a full snapshot. There is no diffing: every snapshot
replaces whatever the subscriber held before.
"""

import logging
import threading
import uuid
from collections.abc import Callable

logger = logging.getLogger(__name__)


class Subscription:
    """Handle returned by subscribe. cancel() is idempotent."""

    def __init__(self, feed: "ChangeFeed", contract_number: str, token: str) -> None:
        self._feed = feed
        self.contract_number = contract_number
        self._token = token
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if self._active:
            self._feed._remove(self.contract_number, self._token)
            self._active = False


class ChangeFeed:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[str, dict[str, Callable[[], None]]] = {}

    def subscribe(self, contract_number: str, on_change: Callable[[], None]) -> Subscription:
        token = str(uuid.uuid4())
        with self._lock:
            self._listeners.setdefault(contract_number, {})[token] = on_change
        return Subscription(self, contract_number, token)

    def publish(self, contract_number: str) -> None:
        with self._lock:
            listeners = list(self._listeners.get(contract_number, {}).values())
        for on_change in listeners:
            try:
                on_change()
            except Exception:
                # Remaining listeners still receive the event.
                logger.exception("Change listener failed for contract %s", contract_number)

    def subscriber_count(self, contract_number: str) -> int:
        with self._lock:
            return len(self._listeners.get(contract_number, {}))

    def _remove(self, contract_number: str, token: str) -> None:
        with self._lock:
            listeners = self._listeners.get(contract_number)
            if not listeners:
                return
            listeners.pop(token, None)
            if not listeners:
                del self._listeners[contract_number]


class ContractLocks:
    """In-process mutexes serializing read-then-write sequences.

    Keyed by contract number, or by person identity for flows that open a new
    contract and so have no existing number to lock on.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def for_contract(self, contract_number: str) -> threading.RLock:
        return self._lock(f"contract:{contract_number}")

    def for_identity(self, id_type: str, id_number: str) -> threading.RLock:
        return self._lock(f"identity:{id_type}:{id_number}")

    def _lock(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock
