"""Content hashing for cache-busting asset names."""

from __future__ import annotations

import hashlib
import posixpath

DIGEST_HEX_LENGTH = hashlib.sha256().digest_size * 2


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def content_hash(data: bytes, length: int = 8) -> str:
    """Lowercase hex SHA-256 prefix of *data*, *length* clamped to [1, 64]."""
    length = max(1, min(length, DIGEST_HEX_LENGTH))
    return sha256_hex(data)[:length]


def hashed_name(name: str, digest: str) -> str:
    """Insert ``-<digest>`` between the stem and extension of *name*.

    ``images/banner.webp`` + ``1a2b3c4d`` -> ``images/banner-1a2b3c4d.webp``
    """
    stem, ext = posixpath.splitext(name)
    return f"{stem}-{digest}{ext}"
