"""Per-key exclusive locks for gift card mutations.

Keys:
  ``gift_card:<id>``               any mutation of one card
  ``issuance:<agent>:<YYYY-MM>``   booking-agent issuance within a calendar month

Waiters give up after ``GIFT_CARD_LOCK_TIMEOUT_SECONDS`` with
``LockContendedError``; nothing in the engine retries on contention.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from functools import lru_cache
from typing import AsyncIterator, Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import month_key
from libs.common.logging import get_logger
from services.giftcard_service.errors import LockContendedError

logger = get_logger(__name__)


def card_lock_key(card_id: uuid.UUID) -> str:
    return f"gift_card:{card_id}"


def issuance_lock_key(agent_id: str, moment: datetime) -> str:
    tz_name = get_settings().GIFT_CARD_LIMIT_TIMEZONE
    return f"issuance:{agent_id}:{month_key(moment, tz_name)}"


class KeyedLockManager:
    """In-process keyed ``asyncio.Lock`` registry with a bounded wait.

    Locks are created on first use and dropped once nobody holds or waits on
    them, so the registry does not grow with the number of cards.
    """

    def __init__(self, timeout: float) -> None:
        self._timeout = timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._refs: dict[str, int] = {}

    @property
    def timeout(self) -> float:
        return self._timeout

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, key: str, timeout: Optional[float] = None) -> AsyncIterator[None]:
        wait = self._timeout if timeout is None else timeout
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._refs[key] = self._refs.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=wait)
            except asyncio.TimeoutError:
                logger.warning("Lock %s contended after %.2fs", key, wait)
                raise LockContendedError(
                    "Resource is busy, retry the request", lock_key=key
                )
            try:
                yield
            finally:
                lock.release()
        finally:
            self._refs[key] -= 1
            if self._refs[key] == 0:
                del self._refs[key]
                self._locks.pop(key, None)


@lru_cache
def get_lock_manager() -> KeyedLockManager:
    return KeyedLockManager(timeout=get_settings().GIFT_CARD_LOCK_TIMEOUT_SECONDS)
