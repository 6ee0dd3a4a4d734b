"""
User registration and login backed by the ``auth.users`` collection.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from contextlib import AbstractContextManager
from typing import TYPE_CHECKING

from passlib.context import CryptContext

from .errors import DocumentValidationError, DuplicateUserError
from .permissions import ADMIN, READ, WILDCARD, WRITE, RoleGrant

if TYPE_CHECKING:
    from .collection import Collection

logger = logging.getLogger(__name__)

AUTH_DATABASE = "auth"
USERS_COLLECTION = "users"

DEFAULT_ROLES = (RoleGrant.of(WILDCARD, READ),)
ADMIN_ROLES = (RoleGrant.of(WILDCARD, READ, WRITE, ADMIN),)


class PasswordHasher:
    """
    One-way hash and verify. Plaintext never leaves these two calls.
    """

    def __init__(self, context: CryptContext | None = None, rounds: int | None = None) -> None:
        if context is None:
            options = {"bcrypt__rounds": rounds} if rounds else {}
            context = CryptContext(schemes=["bcrypt"], deprecated="auto", **options)
        self._context = context

    def hash(self, plain_password: str) -> str:
        return self._context.hash(plain_password)

    def verify(self, plain_password: str, hashed_password: object) -> bool:
        if not isinstance(hashed_password, str) or not hashed_password:
            return False
        try:
            return self._context.verify(plain_password, hashed_password)
        except (ValueError, TypeError):
            # Unrecognized or corrupt stored hash.
            return False


def role_documents(roles: Iterable[RoleGrant | Mapping[str, object]] | None) -> list[dict[str, object]]:
    if not roles:
        roles = DEFAULT_ROLES
    documents = []
    for role in roles:
        if isinstance(role, RoleGrant):
            documents.append(role.to_document())
            continue
        grant = RoleGrant.from_document(role) if isinstance(role, Mapping) else None
        if grant is None:
            raise DocumentValidationError(f"invalid role grant: {role!r}")
        documents.append(grant.to_document())
    return documents


class UserManager:
    def __init__(
        self,
        users: "Collection",
        hasher: PasswordHasher,
        operation: Callable[[], AbstractContextManager[None]],
    ) -> None:
        self._users = users
        self._hasher = hasher
        self._operation = operation

    def find_user(self, username: str) -> dict[str, object] | None:
        return self._users.find_one({"username": username})

    def register(
        self,
        username: str,
        password: str,
        roles: Iterable[RoleGrant | Mapping[str, object]] | None = None,
    ) -> dict[str, object]:
        """
        Store a new user with a hashed password. Without roles the user can read everything.

        Raises DuplicateUserError when the username is taken.
        """
        if not isinstance(username, str) or not username:
            raise DocumentValidationError("username must be a non-empty string")
        grants = role_documents(roles)
        password_hash = self._hasher.hash(password)

        with self._operation():
            if self.find_user(username) is not None:
                raise DuplicateUserError(f"User {username} already exists")
            result = self._users.insert_one(
                {"username": username, "password": password_hash, "roles": grants}
            )
        logger.info("Registered user %s", username)
        return result.document

    def login(self, username: str, password: str) -> dict[str, object] | None:
        user = self.find_user(username)
        if user is None:
            return None
        if not self._hasher.verify(password, user.get("password")):
            logger.warning("Failed login for user %s", username)
            return None
        return user

    def ensure_admin(self, username: str, password: str) -> dict[str, object] | None:
        """
        Create the admin user when no user exists yet. Returns it, or None if users already exist.
        """
        with self._operation():
            if self._users.count_documents() > 0:
                return None
            user = self.register(username, password, ADMIN_ROLES)
        logger.warning("Created default admin user (username: %s)", username)
        return user
