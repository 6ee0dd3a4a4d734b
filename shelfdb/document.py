"""
Document validation and normalization helpers.
"""

from __future__ import annotations

import copy
import json
import secrets
import time
from collections.abc import Mapping

from .errors import DocumentValidationError

ID_FIELD = "_id"


def generate_id() -> str:
    """
    Return a 32-char hex id: 8 digits of UNIX seconds followed by 24 random ones.

    Ids are unique in practice but only roughly time ordered.
    """
    return f"{int(time.time()):08x}{secrets.token_hex(12)}"


def validate_document(doc: object) -> dict[str, object]:
    """
    Check that doc is a dict with string keys that JSON can store.
    """
    if not isinstance(doc, dict):
        raise DocumentValidationError("document must be a dict")

    for key in doc.keys():
        if not isinstance(key, str):
            raise DocumentValidationError("document keys must be strings")

    try:
        json.dumps(doc)
    except (TypeError, ValueError) as exc:
        raise DocumentValidationError(f"document is not JSON serializable: {exc}") from exc
    return doc


def normalize_document(doc: dict[str, object]) -> dict[str, object]:
    """
    Validate a client document and return a deep copy carrying a fresh _id.

    Any client supplied _id is overwritten.
    """
    normalized = copy.deepcopy(validate_document(doc))
    normalized[ID_FIELD] = generate_id()
    return normalized


def strip_id(data: Mapping[str, object]) -> dict[str, object]:
    return {k: v for k, v in data.items() if k != ID_FIELD}


def apply_patch(target: dict[str, object], patch: Mapping[str, object]) -> None:
    """
    Shallow merge of top-level fields into target; _id is never overwritten.
    """
    target.update(copy.deepcopy(strip_id(patch)))


def apply_replacement(target: dict[str, object], replacement: Mapping[str, object]) -> None:
    """
    Replace every field of target except _id.
    """
    doc_id = target.get(ID_FIELD)
    target.clear()
    target.update(copy.deepcopy(strip_id(replacement)))
    if doc_id is not None:
        target[ID_FIELD] = doc_id
