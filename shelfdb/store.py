"""
In-memory document and collection store.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Sequence
from typing import NamedTuple

from .document import apply_patch, apply_replacement, normalize_document
from .errors import InvalidNameError


class CollectionKey(NamedTuple):
    database: str
    collection: str

    def __str__(self) -> str:
        return f"{self.database}.{self.collection}"

    @classmethod
    def of(cls, database: str, collection: str) -> "CollectionKey":
        return cls(validate_database_name(database), validate_name(collection, kind="collection"))


def validate_database_name(name: object) -> str:
    validate_name(name, kind="database")
    if "." in name:
        raise InvalidNameError(f"database name may not contain '.': {name!r}")
    return name


def validate_name(name: object, kind: str = "name") -> str:
    if not isinstance(name, str) or not name:
        raise InvalidNameError(f"{kind} name must be a non-empty string")
    if "/" in name or "\\" in name or "\x00" in name:
        raise InvalidNameError(f"{kind} name may not contain path separators: {name!r}")
    if name.startswith("."):
        raise InvalidNameError(f"{kind} name may not start with '.': {name!r}")
    return name


class DocumentStore:
    """
    Owns every collection as an ordered list of documents.

    Positions are list indexes: lookup is O(1) and a delete shifts every later
    position down by one.
    """

    def __init__(self) -> None:
        self._collections: dict[CollectionKey, list[dict[str, object]]] = {}

    # --- collections ------------------------------------------------------

    def ensure(self, key: CollectionKey) -> list[dict[str, object]]:
        return self._collections.setdefault(key, [])

    def exists(self, key: CollectionKey) -> bool:
        return key in self._collections

    def keys(self) -> list[CollectionKey]:
        return list(self._collections)

    def databases(self) -> list[str]:
        return sorted({key.database for key in self._collections})

    def collections(self, database: str) -> list[str]:
        return sorted(key.collection for key in self._collections if key.database == database)

    def documents(self, key: CollectionKey) -> Sequence[dict[str, object]]:
        """
        Live view of a collection for read-only consumers. Missing collections are empty.
        """
        return self._collections.get(key, ())

    # --- documents --------------------------------------------------------

    def get(self, key: CollectionKey, position: int) -> dict[str, object]:
        return self._collections[key][position]

    def insert(self, key: CollectionKey, doc: dict[str, object]) -> dict[str, object]:
        """
        Append a document under a fresh _id and return a copy of what was stored.
        """
        stored = normalize_document(doc)
        self.ensure(key).append(stored)
        return copy.deepcopy(stored)

    def insert_many(
        self, key: CollectionKey, docs: Iterable[dict[str, object]]
    ) -> list[dict[str, object]]:
        # Normalize everything first so a bad document leaves the collection untouched.
        stored = [normalize_document(doc) for doc in docs]
        self.ensure(key).extend(stored)
        return copy.deepcopy(stored)

    def replace_or_patch(
        self,
        key: CollectionKey,
        position: int,
        data: dict[str, object],
        is_patch: bool,
    ) -> dict[str, object]:
        target = self._collections[key][position]
        if is_patch:
            apply_patch(target, data)
        else:
            apply_replacement(target, data)
        return copy.deepcopy(target)

    def delete_at(self, key: CollectionKey, position: int) -> dict[str, object]:
        return self._collections[key].pop(position)

    # --- bulk -------------------------------------------------------------

    def load(self, key: CollectionKey, docs: list[dict[str, object]]) -> None:
        """
        Install documents read from a snapshot, keeping their stored _ids.
        """
        self._collections[key] = docs

    def clear(self) -> None:
        self._collections.clear()
