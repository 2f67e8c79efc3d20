"""
Canonical form and content hash of a scoring request.

Two requests that mean the same thing must map to the same cache key no matter
how their JSON was ordered or which transient fields they carried:

    canonical = canonicalize(request)      # bytes
    key = content_hash(canonical)          # 64-char lowercase hex

Keys are sorted at every level, separators are compact, text is UTF-8, absent
and null optional fields are dropped, and row ids, request ids and submission
timestamps never take part.
"""

import hashlib
import json

from .models import ScoringRequest

_TRANSIENT_FIELDS = {
    "request_id": True,
    "submitted_at": True,
    "questions": {"__all__": {"id", "test_id"}},
}


def canonicalize(request: ScoringRequest) -> bytes:
    payload = request.model_dump(
        mode="json",
        by_alias=True,
        exclude_none=True,
        exclude=_TRANSIENT_FIELDS,
    )
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def content_hash(canonical: bytes) -> str:
    return hashlib.sha256(canonical).hexdigest()


def cache_key(request: ScoringRequest) -> str:
    """Cache key for a request: SHA-256 of its canonical bytes."""
    return content_hash(canonicalize(request))


__all__ = ["canonicalize", "content_hash", "cache_key"]
