"""
Canonical hashing for the per-article audit chain.

Each event stores ``payload_hash`` (its breakdown) and ``hash`` (the
event itself, linked to the previous event of the same article).  Both
are SHA-256 over a canonical text form, so any process on any database
recomputes identical digests.
"""

import hashlib
import json
from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

# prev-hash stand-in for the ArticleCreated event at seq 1
CHAIN_ROOT = "ARTICLE-ROOT"


def _encode(value: Any) -> Any:
    match value:
        case Enum():
            return value.value
        case UUID():
            return str(value)
        case datetime() | date():
            return value.isoformat()
    raise TypeError(f"cannot hash value of type {type(value).__name__}")


def canonicalize_json(data: Any) -> str:
    """Sorted keys, no whitespace."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_encode)


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: dict) -> str:
    return _sha256(canonicalize_json(payload))


def hash_audit_event(
    article_id: UUID | str,
    seq: int,
    action: str,
    quantity_delta: int,
    payload_hash: str,
    prev_hash: str | None,
    attributes: Mapping[str, Any] | None = None,
) -> str:
    """
    Digest of one audit event.

    Covers the article, its position in the article's sequence, the action,
    the signed quantity moved, the payload digest and ``attributes`` (the
    floor, the people and the traceability tags recorded on the event), and
    folds in ``prev_hash`` so that rewriting any earlier event breaks every
    later one.
    """
    return _sha256(canonicalize_json([
        str(article_id),
        seq,
        action,
        quantity_delta,
        payload_hash,
        {k: None if v is None else str(v) for k, v in (attributes or {}).items()},
        prev_hash or CHAIN_ROOT,
    ]))
