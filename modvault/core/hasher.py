"""Digest helpers for payload verification.

Expected digests may arrive as bare hex or in the ``sha256:<hex>`` form
used by content-addressed stores; both are accepted.
"""

from __future__ import annotations

import hashlib
import hmac


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def normalize_digest(digest: str | None) -> str:
    """Strip the ``sha256:`` prefix and whitespace, lowercase the rest.

    ``None`` and empty strings normalize to ``""`` (meaning: no digest).
    """
    if not digest:
        return ""
    return digest.strip().lower().removeprefix("sha256:")


def digest_matches(data: bytes, expected: str | None) -> tuple[bool, str]:
    """Compare the SHA-256 of *data* against *expected*.

    Returns ``(matches, actual_hex)``. An empty expected digest always
    matches; verification is skipped, not failed.
    """
    actual = sha256_hex(data)
    wanted = normalize_digest(expected)
    if not wanted:
        return True, actual
    return hmac.compare_digest(actual.encode(), wanted.encode()), actual
