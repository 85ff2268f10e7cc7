# ==============================================================================
# Scoring cache / coordinator.
#
# One computation per product key at a time: the first caller for a key
# registers a Future and computes; everyone else arriving meanwhile waits on
# that Future. Finished records are written through to the persistent store,
# or to a process-local store while the persistent one is failing.
# ==============================================================================

import logging
import threading
from concurrent.futures import Future

from bloomcart.db import MemoryProductStore, StoreUnavailable
from bloomcart.models import ProductEvaluation

logger = logging.getLogger('cache')


class ScoreCache:
    """
    Args:
        store: persistent product store (MongoProductStore) or None to run
            purely in memory.
        fallback: process-local store used whenever `store` is missing or
            raising StoreUnavailable.
    """

    def __init__(self, store=None, fallback=None):
        self.store = store
        self.fallback = fallback if fallback is not None else MemoryProductStore()
        self._inflight = {}
        self._pending_deletes = set()
        self._lock = threading.Lock()
        if store is None:
            logger.warning("No persistent store configured; product results are cached in memory only.")

    # --- storage with fallback ---

    def _retry_pending_delete(self, key: str) -> bool:
        """
        Replays a cache bust that failed during an outage. Returns False while
        the persistent copy is still stale and must not be read.
        """
        with self._lock:
            if key not in self._pending_deletes:
                return True
        try:
            self.store.delete(key)
        except StoreUnavailable as e:
            logger.warning(f"Pending invalidation of '{key}' still cannot reach the persistent store: {e}")
            return False
        with self._lock:
            self._pending_deletes.discard(key)
        logger.info(f"Pending invalidation of '{key}' applied to the persistent store.")
        return True

    def _read(self, key: str) -> dict | None:
        document = None
        if self.store is not None and self._retry_pending_delete(key):
            try:
                document = self.store.get(key)
            except StoreUnavailable as e:
                logger.warning(f"Persistent store unavailable for read of '{key}', using local cache: {e}")
        if document is None:
            # Results written while the persistent store was down live here.
            document = self.fallback.get(key)
        return document

    def _write(self, key: str, document: dict) -> None:
        if self.store is not None:
            try:
                self.store.upsert(key, document)
                with self._lock:
                    self._pending_deletes.discard(key)
                return
            except StoreUnavailable as e:
                logger.warning(f"Persistent store unavailable for write of '{key}', keeping result locally: {e}")
        self.fallback.upsert(key, document)

    def get(self, key: str) -> ProductEvaluation | None:
        """Cached record for the key, or None. Never computes."""
        document = self._read(key)
        if document is None:
            return None
        try:
            return ProductEvaluation.from_document(document)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable cached record for '{key}': {e}")
            return None

    def invalidate(self, key: str) -> bool:
        """
        Explicit cache bust; the next lookup recomputes. A bust that cannot
        reach the persistent store is kept pending and replayed on the next
        read of the key, which skips the stale persistent copy until then.
        """
        removed = False
        if self.store is not None:
            try:
                removed = self.store.delete(key)
                with self._lock:
                    self._pending_deletes.discard(key)
            except StoreUnavailable as e:
                logger.error(f"Persistent store unavailable for delete of '{key}'; invalidation kept pending: {e}")
                with self._lock:
                    self._pending_deletes.add(key)
        removed = self.fallback.delete(key) or removed
        logger.info(f"Cache invalidated for '{key}' (removed={removed})")
        return removed

    def pending_invalidations(self) -> int:
        with self._lock:
            return len(self._pending_deletes)

    # --- single-flight ---

    def _claim(self, key: str) -> tuple:
        """Returns (future, owner). Only the owner may run the computation."""
        with self._lock:
            future = self._inflight.get(key)
            if future is not None:
                return future, False
            future = Future()
            self._inflight[key] = future
            return future, True

    def _run(self, key: str, future: Future, compute_fn) -> None:
        # The future resolves to (record, hit), hit meaning a stored record was found.
        try:
            cached = self.get(key)
            if cached is not None:
                logger.info(f"CACHE HIT: '{key}'")
                future.set_result((cached, True))
                return

            logger.info(f"CACHE MISS: computing '{key}'")
            result = compute_fn(key)
            self._write(key, result.to_document())
            future.set_result((result, False))
        except Exception as e:
            logger.error(f"Computation for '{key}' failed: {e}", exc_info=True)
            future.set_exception(e)
        finally:
            if not future.done():
                future.cancel()
            with self._lock:
                self._inflight.pop(key, None)

    def get_or_compute_with_hit(self, key: str, compute_fn, timeout: float | None = None) -> tuple:
        """
        Returns (record, hit) for `key`, computing the record with
        `compute_fn(key)` when absent. Concurrent callers for the same key
        share one computation; `hit` is False for all of them when it ran.

        `timeout` only bounds how long this caller waits; the computation
        itself carries on for the other waiters.
        """
        future, owner = self._claim(key)
        if owner:
            self._run(key, future, compute_fn)
        else:
            logger.info(f"Joining in-flight computation for '{key}'")
        return future.result(timeout=timeout)

    def get_or_compute(self, key: str, compute_fn, timeout: float | None = None) -> ProductEvaluation:
        return self.get_or_compute_with_hit(key, compute_fn, timeout)[0]

    def get_or_compute_batch(self, keys, compute_fn, timeout: float | None = None) -> list:
        """
        Batch form of get_or_compute. Results follow the order of `keys`;
        repeated keys, and keys already being computed elsewhere, are shared.
        """
        claims = {}
        for key in keys:
            if key not in claims:
                claims[key] = self._claim(key)

        for key, (future, owner) in claims.items():
            if owner:
                self._run(key, future, compute_fn)

        return [claims[key][0].result(timeout=timeout)[0] for key in keys]

    def inflight_count(self) -> int:
        with self._lock:
            return len(self._inflight)
