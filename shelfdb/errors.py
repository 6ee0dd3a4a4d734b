class ShelfDBError(Exception):
    """Base error for the project."""


class DocumentValidationError(ShelfDBError):
    """Raised when input documents or update specs fail basic validation."""


class InvalidNameError(ShelfDBError):
    """Raised for database or collection names that cannot map to a file."""


class StorageError(ShelfDBError):
    """Raised for persistence-level issues."""


class ConfigError(ShelfDBError):
    """Raised when store options are invalid."""


class DuplicateUserError(ShelfDBError):
    """Raised when registering a username that already exists."""


class StoreClosedError(ShelfDBError):
    """Raised when a store is used before initialize() or after close()."""
