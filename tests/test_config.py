import unittest
from pathlib import Path

from shelfdb import ConfigError, ShelfDB, StoreOptions


class StoreOptionsTests(unittest.TestCase):
    def test_defaults(self) -> None:
        options = StoreOptions()
        options.validate()
        self.assertFalse(options.persistent)
        self.assertEqual(options.idle_timeout_seconds, 10.0)
        self.assertEqual(options.dump_interval_seconds, 10.0)

    def test_from_mapping_accepts_camel_case(self) -> None:
        options = StoreOptions.from_mapping(
            {"storageMode": "disk", "storagePath": "/tmp/x", "idleTimeout": 5000, "dump_interval": 1000}
        )
        self.assertTrue(options.persistent)
        self.assertEqual(options.root, Path("/tmp/x"))
        self.assertEqual(options.idle_timeout_seconds, 5.0)
        self.assertEqual(options.dump_interval_seconds, 1.0)

    def test_unknown_option_raises(self) -> None:
        with self.assertRaises(ConfigError):
            StoreOptions.from_mapping({"storageMod": "disk"})
        with self.assertRaises(ConfigError):
            StoreOptions().with_overrides(colour="blue")

    def test_validate(self) -> None:
        for bad in (
            StoreOptions(storage_mode="cloud"),
            StoreOptions(idle_timeout=0),
            StoreOptions(dump_interval=-1),
            StoreOptions(admin_username=""),
        ):
            with self.subTest(options=bad):
                with self.assertRaises(ConfigError):
                    bad.validate()

    def test_store_validates_on_construction(self) -> None:
        with self.assertRaises(ConfigError):
            ShelfDB(storage_mode="cloud")


if __name__ == "__main__":
    unittest.main()
