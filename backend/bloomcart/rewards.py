# bloomcart/rewards.py
"""
Reward aggregation ("plant state").

Each account folds a stream of product grades into a bounded value in
[REWARD_MIN_VALUE, REWARD_MAX_VALUE]. Folds for the same account are
serialized; different accounts never wait on each other.
"""

import logging
import threading
import weakref
from dataclasses import replace
from datetime import datetime, timezone

from bloomcart import config
from bloomcart.db import MemoryAccountStore, StoreUnavailable
from bloomcart.grading import DEFAULT_SCALE, GradeScale
from bloomcart.models import HistoryEntry, RewardAccount

logger = logging.getLogger('rewards')


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def apply_grade(account: RewardAccount, grade: str, scale: GradeScale = DEFAULT_SCALE,
                now: datetime | None = None, history_limit: int = 0) -> RewardAccount:
    """Pure fold of one grade into an account. Returns a new account."""
    now = now or _utcnow()
    delta = scale.delta_for(grade)
    value = max(config.REWARD_MIN_VALUE, min(config.REWARD_MAX_VALUE, account.value + delta))

    history = account.history + (HistoryEntry(grade=grade, delta=delta, timestamp=now),)
    if history_limit > 0:
        history = history[-history_limit:]

    return replace(
        account,
        value=value,
        total_count=account.total_count + 1,
        favorable_count=account.favorable_count + (1 if scale.is_favorable(grade) else 0),
        history=history,
        updated_at=now,
    )


def _freshness(document: dict) -> tuple:
    return int(document.get('total_count', 0)), document.get('updated_at') or ''


class RewardAggregator:
    """
    Every account written or read through the persistent store is mirrored
    into `fallback`, so an outage continues from the last known state and the
    folds made during it win over the store's older copy after recovery.
    """

    def __init__(self, store=None, fallback=None, scale: GradeScale = DEFAULT_SCALE,
                 start_value: int = config.REWARD_START_VALUE,
                 history_limit: int = config.REWARD_HISTORY_LIMIT, clock=_utcnow):
        self.store = store
        self.fallback = fallback if fallback is not None else MemoryAccountStore()
        self.scale = scale
        self.start_value = start_value
        self.history_limit = history_limit
        self.clock = clock
        # Entries disappear once no caller holds the account's lock.
        self._locks = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _lock_for(self, account_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[account_id] = lock
            return lock

    def _load(self, account_id: str) -> dict | None:
        stored = None
        if self.store is not None:
            try:
                stored = self.store.get(account_id)
            except StoreUnavailable as e:
                logger.warning(f"Persistent store unavailable for account '{account_id}', using local state: {e}")
        local = self.fallback.get(account_id)

        if stored is None:
            return local
        if local is not None and _freshness(local) > _freshness(stored):
            logger.warning(f"Local state for account '{account_id}' is newer than the stored copy "
                           f"({local.get('total_count')} vs {stored.get('total_count')} updates); using it.")
            return local
        self.fallback.upsert(account_id, stored)
        return stored

    def _save(self, account: RewardAccount) -> None:
        document = account.to_document()
        self.fallback.upsert(account.account_id, document)
        if self.store is not None:
            try:
                self.store.upsert(account.account_id, document)
            except StoreUnavailable as e:
                logger.warning(f"Persistent store unavailable, keeping account '{account.account_id}' locally: {e}")

    def new_account(self, account_id: str) -> RewardAccount:
        return RewardAccount(account_id=account_id, value=self.start_value)

    def get_account(self, account_id: str) -> RewardAccount:
        """Stored snapshot, or a neutral unsaved account for a new id."""
        document = self._load(account_id)
        return RewardAccount.from_document(document) if document else self.new_account(account_id)

    def apply(self, account_id: str, grade: str) -> RewardAccount:
        """Folds one product grade into the account and persists the result."""
        with self._lock_for(account_id):
            account = self.get_account(account_id)
            updated = apply_grade(account, grade, self.scale, self.clock(), self.history_limit)
            self._save(updated)

        logger.info(f"Plant state updated: account={account_id}, grade={grade}, "
                    f"value {account.value} -> {updated.value}")
        return updated
