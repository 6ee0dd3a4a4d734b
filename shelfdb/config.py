"""
Store options.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path

from .errors import ConfigError

MEMORY = "memory"
DISK = "disk"
STORAGE_MODES = (MEMORY, DISK)

_DEFAULT_IDLE_TIMEOUT_MS = 10_000

# camelCase spellings accepted by from_mapping()
_ALIASES = {
    "storageMode": "storage_mode",
    "storagePath": "storage_path",
    "idleTimeout": "idle_timeout",
    "dumpInterval": "dump_interval",
    "adminUsername": "admin_username",
    "adminPassword": "admin_password",
}


@dataclass(slots=True)
class StoreOptions:
    storage_mode: str = MEMORY
    storage_path: str | Path = Path("shelfdb_data")
    idle_timeout: int = _DEFAULT_IDLE_TIMEOUT_MS
    dump_interval: int | None = None
    admin_username: str = "admin"
    admin_password: str = "admin"

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, object]) -> "StoreOptions":
        """
        Build options from a plain mapping, accepting snake_case or camelCase keys.
        """
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, object] = {}
        for key, value in mapping.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                raise ConfigError(f"unknown option: {key}")
            kwargs[name] = value
        return cls(**kwargs)

    def with_overrides(self, **overrides: object) -> "StoreOptions":
        try:
            return replace(self, **overrides)
        except TypeError as exc:
            raise ConfigError(str(exc)) from exc

    @property
    def persistent(self) -> bool:
        return self.storage_mode == DISK

    @property
    def root(self) -> Path:
        return Path(self.storage_path)

    @property
    def idle_timeout_seconds(self) -> float:
        return self.idle_timeout / 1000.0

    @property
    def dump_interval_seconds(self) -> float:
        interval = self.dump_interval if self.dump_interval is not None else self.idle_timeout
        return interval / 1000.0

    def validate(self) -> None:
        if self.storage_mode not in STORAGE_MODES:
            raise ConfigError(
                f"storage_mode must be one of {', '.join(STORAGE_MODES)}, got {self.storage_mode!r}"
            )
        if not isinstance(self.idle_timeout, (int, float)) or self.idle_timeout <= 0:
            raise ConfigError("idle_timeout must be a positive number of milliseconds")
        if self.dump_interval is not None and (
            not isinstance(self.dump_interval, (int, float)) or self.dump_interval <= 0
        ):
            raise ConfigError("dump_interval must be a positive number of milliseconds")
        if not self.admin_username:
            raise ConfigError("admin_username must not be empty")
