import signal
import unittest

from shelfdb import ShelfDB
from shelfdb.auth import PasswordHasher
from shelfdb.lifecycle import install_shutdown_handlers


class FakeDB:
    def __init__(self) -> None:
        self.closed = 0

    def close_when_idle(self, callback) -> None:
        self.closed += 1
        callback()


class ShutdownHandlerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = FakeDB()
        self.previous = install_shutdown_handlers(self.db, signals=(signal.SIGTERM,))

    def tearDown(self) -> None:
        for sig, handler in self.previous.items():
            signal.signal(sig, handler)

    def test_signal_closes_once_and_exits(self) -> None:
        handler = signal.getsignal(signal.SIGTERM)
        with self.assertRaises(SystemExit) as ctx:
            handler(signal.SIGTERM, None)
        self.assertEqual(ctx.exception.code, 0)
        self.assertEqual(self.db.closed, 1)

        # A second signal during shutdown is ignored.
        handler(signal.SIGTERM, None)
        self.assertEqual(self.db.closed, 1)

    def test_previous_handlers_are_returned(self) -> None:
        self.assertIn(signal.SIGTERM, self.previous)


class SignalDuringOperationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = ShelfDB(password_hasher=PasswordHasher(rounds=4))
        self.db.initialize()
        self.previous = install_shutdown_handlers(self.db, signals=(signal.SIGTERM,))

    def tearDown(self) -> None:
        for sig, handler in self.previous.items():
            signal.signal(sig, handler)
        self.db.close()

    def test_signal_inside_operation_waits_for_it(self) -> None:
        handler = signal.getsignal(signal.SIGTERM)
        with self.assertRaises(SystemExit):
            with self.db._operation():
                handler(signal.SIGTERM, None)
                closed_inside = self.db.closed
        self.assertFalse(closed_inside)
        self.assertTrue(self.db.closed)


if __name__ == "__main__":
    unittest.main()
