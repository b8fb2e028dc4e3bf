import hashlib

import pytest

from milkypay.errors import ValidationError
from milkypay.hashing import generate_preimage, pin_hash, verify_preimage


def test_pin_hash_is_sha256():
    preimage = bytes(range(32))
    assert pin_hash(preimage) == hashlib.sha256(preimage).digest()


def test_verify_preimage_is_exact():
    preimage = b"abc".ljust(32, b"\x00")
    digest = pin_hash(preimage)
    assert verify_preimage(preimage, digest)
    assert not verify_preimage(preimage, digest[:31] + bytes([digest[31] ^ 1]))
    assert not verify_preimage(b"abd".ljust(32, b"\x00"), digest)


def test_preimage_must_be_32_bytes():
    with pytest.raises(ValidationError):
        pin_hash(b"abc")


def test_generated_preimage_is_a_full_secret():
    preimage = generate_preimage()
    assert len(preimage) == 32
    assert preimage != generate_preimage()
    assert verify_preimage(preimage, pin_hash(preimage))
