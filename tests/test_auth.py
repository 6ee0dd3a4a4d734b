import unittest

from shelfdb import DuplicateUserError, ShelfDB
from shelfdb.auth import PasswordHasher
from shelfdb.errors import DocumentValidationError
from shelfdb.permissions import RoleGrant


class PasswordHasherTests(unittest.TestCase):
    def setUp(self) -> None:
        self.hasher = PasswordHasher(rounds=4)

    def test_hash_and_verify(self) -> None:
        hashed = self.hasher.hash("secret")
        self.assertNotEqual(hashed, "secret")
        self.assertTrue(self.hasher.verify("secret", hashed))
        self.assertFalse(self.hasher.verify("wrong", hashed))

    def test_verify_rejects_garbage_hashes(self) -> None:
        self.assertFalse(self.hasher.verify("secret", "not-a-hash"))
        self.assertFalse(self.hasher.verify("secret", None))
        self.assertFalse(self.hasher.verify("secret", ""))


class UserManagementTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = ShelfDB(password_hasher=PasswordHasher(rounds=4), admin_password="s3cret")
        with self.assertLogs("shelfdb.auth", level="WARNING") as logs:
            self.db.initialize()
        self.admin_logs = logs.output
        self.users = self.db.database("auth").collection("users")

    def tearDown(self) -> None:
        self.db.close()

    def test_default_admin_is_created_once(self) -> None:
        self.assertTrue(any("Created default admin user" in line for line in self.admin_logs))
        self.assertFalse(any("s3cret" in line for line in self.admin_logs))
        admin = self.db.login_user("admin", "s3cret")
        self.assertIsNotNone(admin)
        self.assertEqual(admin["roles"], [{"resource": "*", "permissions": ["admin", "read", "write"]}])
        self.assertEqual(self.users.count_documents(), 1)

    def test_password_is_never_stored_in_plaintext(self) -> None:
        user = self.db.register_user("bob", "hunter2")
        self.assertNotEqual(user["password"], "hunter2")
        stored = self.users.find_one({"username": "bob"})
        self.assertNotEqual(stored["password"], "hunter2")

    def test_register_defaults_to_read_everything(self) -> None:
        user = self.db.register_user("bob", "hunter2")
        self.assertEqual(user["roles"], [{"resource": "*", "permissions": ["read"]}])
        self.assertTrue(user["_id"])

    def test_register_accepts_role_grants(self) -> None:
        user = self.db.register_user("carol", "pw", [RoleGrant.of("db", "write")])
        self.assertEqual(user["roles"], [{"resource": "db", "permissions": ["write"]}])

    def test_register_rejects_malformed_roles(self) -> None:
        with self.assertRaises(DocumentValidationError):
            self.db.register_user("dave", "pw", ["admin"])
        self.assertIsNone(self.users.find_one({"username": "dave"}))

    def test_duplicate_registration_raises(self) -> None:
        self.db.register_user("bob", "hunter2")
        with self.assertRaises(DuplicateUserError):
            self.db.register_user("bob", "other")
        self.assertEqual(self.users.count_documents({"username": "bob"}), 1)

    def test_login(self) -> None:
        self.db.register_user("bob", "hunter2")
        self.assertEqual(self.db.login_user("bob", "hunter2")["username"], "bob")
        with self.assertLogs("shelfdb.auth", level="WARNING"):
            self.assertIsNone(self.db.login_user("bob", "wrong"))
        self.assertIsNone(self.db.login_user("nobody", "hunter2"))


if __name__ == "__main__":
    unittest.main()
