"""
JSON snapshot files: one directory per database, one ``<collection>.json`` per collection.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path

from .errors import InvalidNameError, StorageError
from .store import CollectionKey

logger = logging.getLogger(__name__)

SUFFIX = ".json"


def encode_documents(documents: Sequence[dict[str, object]]) -> str:
    """
    Serialize a collection to the compact JSON array stored on disk.
    """
    return json.dumps(list(documents), separators=(",", ":"))


class SnapshotStorage:
    """
    Whole-collection overwrite snapshots. No log, no checksum.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def ensure_root(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"failed to create storage directory {self.root}: {exc}") from exc

    def collection_path(self, key: CollectionKey) -> Path:
        return self.root / key.database / f"{key.collection}{SUFFIX}"

    def load_all(self) -> dict[CollectionKey, list[dict[str, object]]]:
        """
        Read every snapshot under the root. Any unreadable file is fatal.
        """
        loaded: dict[CollectionKey, list[dict[str, object]]] = {}
        if not self.root.exists():
            return loaded

        try:
            db_dirs = sorted(p for p in self.root.iterdir() if p.is_dir())
        except OSError as exc:
            raise StorageError(f"error loading persisted data: {exc}") from exc

        for db_dir in db_dirs:
            if db_dir.name.startswith("."):
                continue
            for path in sorted(db_dir.glob(f"*{SUFFIX}")):
                if path.name.startswith("."):
                    continue
                try:
                    key = CollectionKey.of(db_dir.name, path.stem)
                except InvalidNameError as exc:
                    raise StorageError(f"unusable collection file {path}: {exc}") from exc
                loaded[key] = self.read_collection(path)
                logger.debug("Loaded %d documents into %s", len(loaded[key]), key)

        logger.info("Loaded %d collections from %s", len(loaded), self.root)
        return loaded

    def read_collection(self, path: Path) -> list[dict[str, object]]:
        try:
            with path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            raise StorageError(f"error reading collection {path}: {exc}") from exc

        if not isinstance(data, list) or not all(isinstance(doc, dict) for doc in data):
            raise StorageError(f"collection file {path} must hold a JSON array of objects")
        return data

    def write_payload(self, key: CollectionKey, payload: str) -> Path:
        """
        Overwrite the collection file with an already serialized JSON array.

        The file is written next to its target and renamed into place, so a
        failed write leaves the previous snapshot intact.
        """
        path = self.collection_path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{key.collection}.", suffix=".tmp", dir=path.parent)
        except OSError as exc:
            raise StorageError(f"failed to write {path}: {exc}") from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except OSError as exc:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise StorageError(f"failed to write {path}: {exc}") from exc

        logger.debug("Wrote %s (%d bytes)", path, len(payload))
        return path
