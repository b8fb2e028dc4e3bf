from __future__ import annotations

import hashlib
import secrets

from milkypay.validation import HASH_LEN, require_hash32


def pin_hash(preimage: bytes) -> bytes:
    return hashlib.sha256(require_hash32(preimage, "pin_preimage")).digest()


def verify_preimage(preimage: bytes, expected: bytes) -> bool:
    return pin_hash(preimage) == bytes(expected)


def generate_preimage() -> bytes:
    """Random claim secret; the full 32 bytes travel in the claim link."""
    return secrets.token_bytes(HASH_LEN)
