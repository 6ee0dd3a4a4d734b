"""
Operation results.

Denied operations keep the empty/zero shape callers expect, and the status
field says why the result is empty.
"""

from __future__ import annotations

import enum
from collections.abc import Iterator
from dataclasses import dataclass, field


class Status(enum.Enum):
    OK = "ok"
    DENIED = "denied"
    NOT_FOUND = "not_found"


@dataclass(slots=True)
class InsertOneResult:
    document: dict[str, object] | None = None
    status: Status = Status.OK

    @property
    def inserted_id(self) -> str | None:
        return None if self.document is None else self.document.get("_id")

    @property
    def acknowledged(self) -> bool:
        return self.status is not Status.DENIED


@dataclass(slots=True)
class InsertManyResult:
    documents: list[dict[str, object]] = field(default_factory=list)
    status: Status = Status.OK

    @property
    def inserted_ids(self) -> list[str]:
        return [doc["_id"] for doc in self.documents]

    @property
    def acknowledged(self) -> bool:
        return self.status is not Status.DENIED


@dataclass(slots=True)
class FindResult:
    documents: list[dict[str, object]] = field(default_factory=list)
    status: Status = Status.OK
    used_index: str | None = None

    def __iter__(self) -> Iterator[dict[str, object]]:
        return iter(self.documents)

    def __len__(self) -> int:
        return len(self.documents)

    def __getitem__(self, i: int) -> dict[str, object]:
        return self.documents[i]

    def __bool__(self) -> bool:
        return bool(self.documents)


@dataclass(slots=True)
class UpdateResult:
    matched_count: int = 0
    modified_count: int = 0
    upserted_id: str | None = None
    status: Status = Status.OK

    @property
    def upserted(self) -> bool:
        return self.upserted_id is not None

    @property
    def acknowledged(self) -> bool:
        return self.status is not Status.DENIED


@dataclass(slots=True)
class DeleteResult:
    deleted_count: int = 0
    status: Status = Status.OK

    @property
    def acknowledged(self) -> bool:
        return self.status is not Status.DENIED


@dataclass(slots=True)
class CreateIndexResult:
    created: bool = False
    status: Status = Status.OK

    def __bool__(self) -> bool:
        return self.created
