"""Hashing utilities."""

from __future__ import annotations

import xxhash


def digest_key(raw: str) -> str:
    """Return the XXH3 64-bit hex digest of *raw*.

    Used to keep cache keys short no matter how many filters contribute to
    them.
    """

    return xxhash.xxh3_64(raw.encode("utf-8")).hexdigest()
