from __future__ import annotations

import hashlib


def roll(seed: str) -> float:
    """Deterministic uniform draw in [0, 1) for ``seed``, stable across processes."""
    digest = hashlib.sha256(seed.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=False) / float(2**64)
