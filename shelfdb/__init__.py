from .config import StoreOptions
from .engine import ShelfDB
from .errors import (
    ConfigError,
    DocumentValidationError,
    DuplicateUserError,
    InvalidNameError,
    ShelfDBError,
    StorageError,
    StoreClosedError,
)
from .permissions import RoleGrant, has_permission
from .results import Status

__all__ = [
    "ConfigError",
    "DocumentValidationError",
    "DuplicateUserError",
    "InvalidNameError",
    "RoleGrant",
    "ShelfDB",
    "ShelfDBError",
    "Status",
    "StorageError",
    "StoreClosedError",
    "StoreOptions",
    "has_permission",
]
