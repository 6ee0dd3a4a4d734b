"""
Database and collection handles: the public per-collection operations.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

from .document import ID_FIELD, strip_id, validate_document
from .errors import DocumentValidationError
from .permissions import READ, WRITE
from .query import is_literal_condition, matches
from .results import (
    CreateIndexResult,
    DeleteResult,
    FindResult,
    InsertManyResult,
    InsertOneResult,
    Status,
    UpdateResult,
)
from .store import CollectionKey, validate_database_name

if TYPE_CHECKING:
    from .engine import ShelfDB

User = Mapping[str, object] | None


def _parse_update(update: object) -> tuple[dict[str, object], bool]:
    """
    Split an update document into (fields, is_patch). Only ``$set`` is understood.
    """
    if not isinstance(update, Mapping):
        raise DocumentValidationError("update must be a dict")
    operators = {k for k in update if isinstance(k, str) and k.startswith("$")}
    if not operators:
        return validate_document(dict(update)), False
    if operators != {"$set"} or len(update) != 1:
        raise DocumentValidationError(
            f"unsupported update, only $set is allowed: {sorted(map(str, update))}"
        )
    fields = update["$set"]
    if not isinstance(fields, Mapping):
        raise DocumentValidationError("$set value must be a dict")
    return validate_document(dict(fields)), True


def _upsert_seed(filter: object, fields: Mapping[str, object]) -> dict[str, object]:
    seed: dict[str, object] = {}
    if isinstance(filter, Mapping):
        seed.update(
            (k, v)
            for k, v in filter.items()
            if isinstance(k, str) and not k.startswith("$") and is_literal_condition(v)
        )
    seed.update(fields)
    return strip_id(seed)


class Collection:
    """
    Handle on one collection. Every call is serialized through the store lock
    and checked against the caller's roles; ``user=None`` skips the check.
    """

    def __init__(self, db: "ShelfDB", key: CollectionKey) -> None:
        self._db = db
        self.key = key

    @property
    def name(self) -> str:
        return self.key.collection

    @property
    def database_name(self) -> str:
        return self.key.database

    @property
    def full_name(self) -> str:
        return str(self.key)

    def __repr__(self) -> str:
        return f"Collection({self.full_name!r})"

    # --- writes -----------------------------------------------------------

    def insert_one(self, doc: dict[str, object], user: User = None) -> InsertOneResult:
        with self._db._operation():
            if not self._db._authorize(user, self.key, WRITE):
                return InsertOneResult(status=Status.DENIED)
            stored = self._db._store.insert(self.key, doc)
            self._db._mutated(self.key)
        return InsertOneResult(stored)

    def insert_many(self, docs: Iterable[dict[str, object]], user: User = None) -> InsertManyResult:
        with self._db._operation():
            if not self._db._authorize(user, self.key, WRITE):
                return InsertManyResult(status=Status.DENIED)
            stored = self._db._store.insert_many(self.key, docs)
            if stored:
                self._db._mutated(self.key)
        return InsertManyResult(stored)

    def update_one(
        self,
        filter: Mapping[str, object] | None,
        update: Mapping[str, object],
        upsert: bool = False,
        user: User = None,
    ) -> UpdateResult:
        """
        Update the first document matching filter.

        An update holding ``$set`` patches top-level fields; any other update
        replaces the document. ``_id`` is always preserved. With upsert and no
        match, a new document is built from the filter's literal fields
        overlaid with the update's fields.
        """
        fields, is_patch = _parse_update(update)
        store = self._db._store
        with self._db._operation():
            if not self._db._authorize(user, self.key, WRITE):
                return UpdateResult(status=Status.DENIED)

            for position, doc in enumerate(store.documents(self.key)):
                if matches(doc, filter):
                    store.replace_or_patch(self.key, position, fields, is_patch)
                    self._db._mutated(self.key)
                    return UpdateResult(matched_count=1, modified_count=1)

            if not upsert:
                return UpdateResult(status=Status.NOT_FOUND)

            stored = store.insert(self.key, _upsert_seed(filter, fields))
            self._db._mutated(self.key)
        return UpdateResult(matched_count=0, modified_count=1, upserted_id=stored[ID_FIELD])

    def delete_one(self, filter: Mapping[str, object] | None, user: User = None) -> DeleteResult:
        """
        Remove every document matching filter at call time.
        """
        store = self._db._store
        with self._db._operation():
            if not self._db._authorize(user, self.key, WRITE):
                return DeleteResult(status=Status.DENIED)
            positions = [i for i, doc in enumerate(store.documents(self.key)) if matches(doc, filter)]
            for position in reversed(positions):
                store.delete_at(self.key, position)
            if positions:
                self._db._mutated(self.key)
        if not positions:
            return DeleteResult(status=Status.NOT_FOUND)
        return DeleteResult(deleted_count=len(positions))

    def create_index(self, field: str, user: User = None) -> CreateIndexResult:
        with self._db._operation():
            if not self._db._authorize(user, self.key, WRITE):
                return CreateIndexResult(status=Status.DENIED)
            self._db.create_index(self.key.database, self.key.collection, field)
        return CreateIndexResult(created=True)

    # --- reads ------------------------------------------------------------

    def find(self, query: Mapping[str, object] | None = None, user: User = None) -> FindResult:
        """
        Return copies of the matching documents in collection order.

        A filter on a single indexed field with a literal value is answered
        from the index; anything else scans the collection.
        """
        with self._db._operation():
            if not self._db._authorize(user, self.key, READ):
                return FindResult(status=Status.DENIED)

            docs = self._db._store.documents(self.key)
            used_index = None
            positions = self._index_positions(query)
            if positions is not None:
                used_index = next(iter(query))
                found = [docs[p] for p in positions]
            else:
                found = [doc for doc in docs if matches(doc, query)]
            found = copy.deepcopy(found)

        status = Status.OK if found else Status.NOT_FOUND
        return FindResult(found, status=status, used_index=used_index)

    def find_one(self, query: Mapping[str, object] | None = None, user: User = None) -> dict[str, object] | None:
        results = self.find(query, user=user)
        return results[0] if results else None

    def count_documents(self, query: Mapping[str, object] | None = None, user: User = None) -> int:
        with self._db._operation():
            if not self._db._authorize(user, self.key, READ):
                return 0
            return sum(1 for doc in self._db._store.documents(self.key) if matches(doc, query))

    def _index_positions(self, query: object) -> list[int] | None:
        if not isinstance(query, Mapping) or len(query) != 1:
            return None
        field, value = next(iter(query.items()))
        if not is_literal_condition(value):
            return None
        return self._db._indexes.lookup(self.key, field, value)


class Database:
    def __init__(self, db: "ShelfDB", name: str) -> None:
        self._db = db
        self.name = validate_database_name(name)

    def __repr__(self) -> str:
        return f"Database({self.name!r})"

    def collection(self, name: str) -> Collection:
        """
        Handle on a collection, creating it empty if it does not exist yet.
        """
        key = CollectionKey.of(self.name, name)
        with self._db._operation():
            self._db._ensure_open()
            self._db._store.ensure(key)
        return Collection(self._db, key)

    def list_collection_names(self) -> list[str]:
        with self._db._operation():
            self._db._ensure_open()
            return self._db._store.collections(self.name)
