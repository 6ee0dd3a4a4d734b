"""
Core database facade that wires together the store, indexes, permissions and persistence.
"""

from __future__ import annotations

import contextlib
import enum
import logging
import threading
import time
from collections.abc import Callable, Iterable, Iterator, Mapping

from .auth import AUTH_DATABASE, USERS_COLLECTION, PasswordHasher, UserManager
from .collection import Collection, Database, User
from .config import StoreOptions
from .errors import DocumentValidationError, StoreClosedError
from .index import IndexManager
from .permissions import RoleGrant, has_permission
from .scheduler import PersistenceScheduler
from .storage import SnapshotStorage
from .store import CollectionKey, DocumentStore

logger = logging.getLogger(__name__)


class _State(enum.Enum):
    NEW = "new"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class ShelfDB:
    """
    Embedded document store with role checks and idle-time JSON snapshots.

    Usage::

        with ShelfDB(storage_mode="disk", storage_path="data") as db:
            people = db.database("app").collection("people")
            people.insert_one({"name": "Alpha"})
    """

    def __init__(
        self,
        options: StoreOptions | Mapping[str, object] | None = None,
        *,
        password_hasher: PasswordHasher | None = None,
        clock: Callable[[], float] = time.monotonic,
        **overrides: object,
    ) -> None:
        if options is None:
            options = StoreOptions()
        elif isinstance(options, Mapping):
            options = StoreOptions.from_mapping(options)
        if overrides:
            options = options.with_overrides(**overrides)
        options.validate()
        self.options = options

        self._lock = threading.RLock()
        self._store = DocumentStore()
        self._indexes = IndexManager(self._store)
        self._storage = SnapshotStorage(options.root) if options.persistent else None
        self._scheduler = PersistenceScheduler(
            self._store,
            self._storage,
            self._lock,
            idle_timeout=options.idle_timeout_seconds,
            interval=options.dump_interval_seconds,
            clock=clock,
        )
        users = Collection(self, CollectionKey(AUTH_DATABASE, USERS_COLLECTION))
        self._users = UserManager(users, password_hasher or PasswordHasher(), self._operation)
        self._state = _State.NEW
        self._depth = 0
        self._owner: int | None = None
        self._pending_close: Callable[[], None] | None = None

    # --- lifecycle --------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._state is _State.CLOSED

    @property
    def scheduler(self) -> PersistenceScheduler:
        return self._scheduler

    def initialize(self) -> None:
        """
        Load snapshots (disk mode), make sure an admin user exists and start the idle dump timer.

        Storage errors propagate and leave the store unopened.
        """
        with self._lock:
            if self._state is _State.OPEN:
                return
            if self._state is not _State.NEW:
                raise StoreClosedError("store is closed")
            try:
                if self._storage is not None:
                    self._storage.ensure_root()
                    for key, docs in self._storage.load_all().items():
                        self._store.load(key, docs)
                self._state = _State.OPEN
                self._users.ensure_admin(self.options.admin_username, self.options.admin_password)
            except Exception as exc:
                logger.error("Error initializing database: %s", exc)
                self._store.clear()
                self._state = _State.NEW
                raise

        if self._storage is not None:
            self._scheduler.start()
        logger.info("Store initialized (%s mode)", self.options.storage_mode)

    def close(self) -> None:
        """
        Stop the dump timer, write every collection one last time and drop in-memory state.

        Closing is final; further calls raise StoreClosedError.
        """
        with self._lock:
            if self._state in (_State.CLOSING, _State.CLOSED):
                return
            was_open = self._state is _State.OPEN
            self._state = _State.CLOSING

        try:
            self._scheduler.stop()
            if was_open:
                self._scheduler.flush_all()
        finally:
            with self._lock:
                self._indexes.clear()
                self._store.clear()
                self._state = _State.CLOSED
            logger.info("Store closed")

    def close_when_idle(self, callback: Callable[[], None] | None = None) -> None:
        """
        Close the store, then call callback.

        When the calling thread is in the middle of an operation (a signal
        handler interrupting it, say), both are deferred until that operation
        returns, so the final dump never sees a half-applied write.
        """
        if self._depth and self._owner == threading.get_ident():
            logger.info("Shutdown requested during an operation, closing once it returns")
            self._pending_close = callback or (lambda: None)
            return
        self.close()
        if callback is not None:
            callback()

    def flush(self) -> list[CollectionKey]:
        """Write every collection to storage now."""
        self._ensure_open()
        return self._scheduler.flush_all()

    def __enter__(self) -> "ShelfDB":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- namespaces -------------------------------------------------------

    def database(self, name: str) -> Database:
        self._ensure_open()
        return Database(self, name)

    def list_databases(self) -> list[str]:
        with self._operation():
            self._ensure_open()
            return self._store.databases()

    def create_index(self, database: str, collection: str, field: str) -> int:
        """
        Build (or rebuild) the index on field. No permission check.
        """
        if not isinstance(field, str) or not field:
            raise DocumentValidationError("index field must be a non-empty string")
        key = CollectionKey.of(database, collection)
        with self._operation():
            self._ensure_open()
            self._store.ensure(key)
            return self._indexes.build_index(key, field)

    # --- users ------------------------------------------------------------

    def register_user(
        self,
        username: str,
        password: str,
        roles: Iterable[RoleGrant | Mapping[str, object]] | None = None,
    ) -> dict[str, object]:
        self._ensure_open()
        return self._users.register(username, password, roles)

    def login_user(self, username: str, password: str) -> dict[str, object] | None:
        self._ensure_open()
        return self._users.login(username, password)

    def has_permission(self, user: User, resource: str, permission: str) -> bool:
        return has_permission(user, resource, permission)

    # --- internal helpers -------------------------------------------------

    @contextlib.contextmanager
    def _operation(self) -> Iterator[None]:
        """
        Hold the store lock for one facade call, running a deferred close after the outermost one.
        """
        pending = None
        try:
            with self._lock:
                if self._depth == 0:
                    self._owner = threading.get_ident()
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                    if self._depth == 0:
                        self._owner = None
                        pending, self._pending_close = self._pending_close, None
        finally:
            if pending is not None:
                self.close()
                pending()

    def _ensure_open(self) -> None:
        if self._state is _State.NEW:
            raise StoreClosedError("store is not initialized, call initialize() first")
        if self._state is not _State.OPEN:
            raise StoreClosedError("store is closed")

    def _authorize(self, user: User, key: CollectionKey, permission: str) -> bool:
        self._ensure_open()
        if user is None:
            return True
        if has_permission(user, str(key), permission):
            return True
        username = user.get("username") if isinstance(user, Mapping) else None
        logger.warning(
            "Permission denied: user %s does not have %s access to %s", username, permission, key
        )
        return False

    def _mutated(self, key: CollectionKey) -> None:
        self._indexes.invalidate(key)
        self._scheduler.mark_dirty(key)
