import json
import shutil
import tempfile
import unittest
from pathlib import Path

from shelfdb.errors import StorageError
from shelfdb.storage import SnapshotStorage, encode_documents
from shelfdb.store import CollectionKey


class SnapshotStorageTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = Path(tempfile.mkdtemp(prefix="shelfdb-tests-"))
        self.storage = SnapshotStorage(self.tmpdir / "data")
        self.storage.ensure_root()

    def tearDown(self) -> None:
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def write(self, key: CollectionKey, docs: list[dict[str, object]]) -> Path:
        return self.storage.write_payload(key, encode_documents(docs))

    def test_encode_is_compact_json_array(self) -> None:
        self.assertEqual(encode_documents([{"_id": "a", "n": [1, 2]}]), '[{"_id":"a","n":[1,2]}]')
        self.assertEqual(encode_documents(()), "[]")

    def test_write_uses_one_file_per_collection(self) -> None:
        key = CollectionKey("test", "one")
        path = self.write(key, [{"_id": "a", "n": 1}])
        self.assertEqual(path, self.tmpdir / "data" / "test" / "one.json")
        self.assertEqual(json.loads(path.read_text(encoding="utf-8")), [{"_id": "a", "n": 1}])

    def test_write_overwrites_and_leaves_no_temp_files(self) -> None:
        key = CollectionKey("test", "one")
        self.write(key, [{"_id": "a"}, {"_id": "b"}])
        self.write(key, [{"_id": "c"}])
        self.assertEqual(json.loads(self.storage.collection_path(key).read_text()), [{"_id": "c"}])
        self.assertEqual(sorted(p.name for p in (self.tmpdir / "data" / "test").iterdir()), ["one.json"])

    def test_load_all_round_trip(self) -> None:
        docs = {
            CollectionKey("test", "one"): [{"_id": "a", "nested": {"x": [1, 2]}}],
            CollectionKey("test", "two"): [],
            CollectionKey("auth", "users"): [{"_id": "u", "username": "admin"}],
        }
        for key, value in docs.items():
            self.write(key, value)
        self.assertEqual(self.storage.load_all(), docs)

    def test_load_ignores_stray_files(self) -> None:
        self.write(CollectionKey("test", "one"), [])
        (self.tmpdir / "data" / "README.txt").write_text("not a database")
        (self.tmpdir / "data" / "test" / "notes.txt").write_text("not a collection")
        self.assertEqual(list(self.storage.load_all()), [CollectionKey("test", "one")])

    def test_load_missing_root_is_empty(self) -> None:
        self.assertEqual(SnapshotStorage(self.tmpdir / "nope").load_all(), {})

    def test_corrupt_file_is_fatal(self) -> None:
        db_dir = self.tmpdir / "data" / "test"
        db_dir.mkdir()
        (db_dir / "bad.json").write_text("[{not json")
        with self.assertRaises(StorageError):
            self.storage.load_all()

    def test_non_array_file_is_fatal(self) -> None:
        db_dir = self.tmpdir / "data" / "test"
        db_dir.mkdir()
        (db_dir / "obj.json").write_text('{"a": 1}')
        with self.assertRaises(StorageError):
            self.storage.load_all()

    def test_ensure_root_failure_raises_storage_error(self) -> None:
        blocker = self.tmpdir / "file"
        blocker.write_text("x")
        with self.assertRaises(StorageError):
            SnapshotStorage(blocker / "sub").ensure_root()

    def test_write_failure_raises_storage_error(self) -> None:
        # A plain file where the database directory should be.
        (self.tmpdir / "data" / "blocked").write_text("x")
        with self.assertRaises(StorageError):
            self.write(CollectionKey("blocked", "one"), [])


if __name__ == "__main__":
    unittest.main()
