"""
Single-field equality indexes over collection positions.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from .store import CollectionKey, DocumentStore

logger = logging.getLogger(__name__)

_MISSING = object()

IndexKey = tuple[bool, object]


def index_key(value: object) -> IndexKey | None:
    """
    Dictionary key for an indexed value, or None when it cannot be indexed.

    The bool flag keeps True and 1 (equal and same hash in Python) apart.
    """
    try:
        hash(value)
    except TypeError:
        return None
    return (isinstance(value, bool), value)


class IndexManager:
    """
    Holds value -> positions maps per (collection, field).

    Indexes are rebuilt from a full scan, never maintained incrementally.
    Mutations only mark a collection's indexes stale; the next lookup rebuilds.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        # key -> field -> index value -> positions
        self._indexes: dict[CollectionKey, dict[str, dict[IndexKey, list[int]]]] = {}
        self._stale: set[CollectionKey] = set()

    def build_index(self, key: CollectionKey, field: str) -> int:
        """
        Scan the collection and (re)build the index for field. Returns the number of distinct values.
        """
        index: dict[IndexKey, list[int]] = defaultdict(list)
        for position, doc in enumerate(self._store.documents(key)):
            value = doc.get(field, _MISSING)
            if value is _MISSING:
                continue
            ikey = index_key(value)
            if ikey is None:
                continue
            index[ikey].append(position)
        self._indexes.setdefault(key, {})[field] = dict(index)
        logger.debug("Built index %s on %s (%d values)", field, key, len(index))
        return len(index)

    def has_index(self, key: CollectionKey, field: str) -> bool:
        return field in self._indexes.get(key, {})

    def fields(self, key: CollectionKey) -> list[str]:
        return sorted(self._indexes.get(key, {}))

    def is_stale(self, key: CollectionKey) -> bool:
        return key in self._stale

    def lookup(self, key: CollectionKey, field: str, value: object) -> list[int] | None:
        """
        Positions holding value, or None when the index cannot answer the lookup.
        """
        if not self.has_index(key, field):
            return None
        ikey = index_key(value)
        if ikey is None:
            return None
        if key in self._stale:
            self._rebuild(key)
        return list(self._indexes[key][field].get(ikey, []))

    def invalidate(self, key: CollectionKey) -> None:
        if key in self._indexes:
            self._stale.add(key)

    def clear(self) -> None:
        self._indexes.clear()
        self._stale.clear()

    def _rebuild(self, key: CollectionKey) -> None:
        for field in list(self._indexes[key]):
            self.build_index(key, field)
        self._stale.discard(key)
