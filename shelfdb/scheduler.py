"""
Dirty tracking and idle-time snapshotting of collections.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from collections.abc import Callable

from .errors import StorageError
from .storage import SnapshotStorage, encode_documents
from .store import CollectionKey, DocumentStore

logger = logging.getLogger(__name__)


class SchedulerState(enum.Enum):
    IDLE = "idle"
    DUMP_IN_PROGRESS = "dump_in_progress"
    SHUTTING_DOWN = "shutting_down"


class PersistenceScheduler:
    """
    Writes dirty collections to storage once the store has been idle long enough.

    Lock order is dump lock, store lock, dirty lock. Collections are serialized
    while holding the store lock and written after releasing it. The timer
    thread never blocks on the store lock, so stop() can join it from a thread
    that holds that lock. A collection whose write fails stays dirty and is
    retried by the next cycle only.
    """

    def __init__(
        self,
        store: DocumentStore,
        storage: SnapshotStorage | None,
        lock: threading.RLock,
        idle_timeout: float,
        interval: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._storage = storage
        self._lock = lock
        self.idle_timeout = idle_timeout
        self.interval = interval if interval is not None else idle_timeout
        self._clock = clock

        self.state = SchedulerState.IDLE
        self._dirty: set[CollectionKey] = set()
        self._dirty_lock = threading.Lock()
        self._last_activity = clock()
        self._dump_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    # --- dirty tracking ---------------------------------------------------

    @property
    def dirty(self) -> frozenset[CollectionKey]:
        with self._dirty_lock:
            return frozenset(self._dirty)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def mark_dirty(self, key: CollectionKey) -> None:
        with self._dirty_lock:
            self._dirty.add(key)
            self._last_activity = self._clock()

    def idle_elapsed(self) -> bool:
        return self._clock() - self._last_activity > self.idle_timeout

    # --- dumping ----------------------------------------------------------

    def tick(self) -> list[CollectionKey]:
        """
        One timer step. Returns the collections written, if any.

        Skips when a dump is already running or when the store lock is held,
        since a held lock means an operation is in flight.
        """
        if self.state is not SchedulerState.IDLE:
            return []
        with self._dirty_lock:
            if not self._dirty or not self.idle_elapsed():
                return []
        if not self._dump_lock.acquire(blocking=False):
            return []
        try:
            return self._dump(all_collections=False, wait=False)
        finally:
            self._dump_lock.release()

    def flush_all(self) -> list[CollectionKey]:
        """
        Write every collection now. Waits for a running dump rather than overlapping it.
        """
        with self._dump_lock:
            return self._dump(all_collections=True, wait=True)

    def _dump(self, all_collections: bool, wait: bool) -> list[CollectionKey]:
        if self._storage is None:
            return []
        if not self._lock.acquire(blocking=wait):
            return []

        previous = self.state
        self.state = SchedulerState.DUMP_IN_PROGRESS
        try:
            try:
                snapshots = self._snapshot(all_collections)
            finally:
                self._lock.release()
            return self._write(snapshots)
        finally:
            # stop() may have moved us to SHUTTING_DOWN meanwhile.
            if self.state is SchedulerState.DUMP_IN_PROGRESS:
                self.state = previous

    def _snapshot(self, all_collections: bool) -> list[tuple[CollectionKey, str]]:
        """Serialize collections. The caller holds the store lock."""
        if all_collections:
            keys = self._store.keys()
        else:
            with self._dirty_lock:
                keys = sorted(self._dirty)

        snapshots: list[tuple[CollectionKey, str]] = []
        for key in keys:
            try:
                payload = encode_documents(self._store.documents(key))
            except (TypeError, ValueError) as exc:
                logger.error("Cannot serialize %s, leaving it dirty: %s", key, exc)
                continue
            snapshots.append((key, payload))
            with self._dirty_lock:
                self._dirty.discard(key)
        return snapshots

    def _write(self, snapshots: list[tuple[CollectionKey, str]]) -> list[CollectionKey]:
        written: list[CollectionKey] = []
        for key, payload in snapshots:
            try:
                self._storage.write_payload(key, payload)
            except StorageError as exc:
                logger.error("Failed to persist %s, will retry next cycle: %s", key, exc)
                with self._dirty_lock:
                    self._dirty.add(key)
                continue
            written.append(key)
        if written:
            logger.info("Persisted %d collection(s) to %s", len(written), self._storage.root)
        return written

    # --- timer ------------------------------------------------------------

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self.state = SchedulerState.IDLE
        self._thread = threading.Thread(target=self._run, name="shelfdb-idle-dump", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self.state = SchedulerState.SHUTTING_DOWN
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.tick()
            except Exception:
                logger.exception("Error during idle data dump")
