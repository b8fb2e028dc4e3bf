from __future__ import annotations

import re

from milkypay.errors import ValidationError


SYMBOL_RE = re.compile(r"^[A-Za-z0-9_]{1,32}$")
ADDRESS_RE = re.compile(r"^[0-9a-f]{64}$")
ASSET_RE = re.compile(r"^[A-Za-z0-9]{1,12}$")

I128_MIN = -(1 << 127)
I128_MAX = (1 << 127) - 1
U64_MAX = (1 << 64) - 1
HASH_LEN = 32


def validate_symbol(value: str) -> bool:
    return isinstance(value, str) and bool(SYMBOL_RE.match(value))


def validate_address(value: str) -> bool:
    return isinstance(value, str) and bool(ADDRESS_RE.match(value))


def validate_asset(value: str) -> bool:
    return isinstance(value, str) and bool(ASSET_RE.match(value))


def require_payment_id(value: str) -> str:
    if not validate_symbol(value):
        raise ValidationError(f"Invalid payment id {value!r}")
    return value


def require_address(value: str, role: str = "address") -> str:
    if not validate_address(value):
        raise ValidationError(f"Invalid {role} {value!r}")
    return value


def require_asset(value: str) -> str:
    if not validate_asset(value):
        raise ValidationError(f"Invalid asset {value!r}")
    return value


def require_i128(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("Amount must be an integer")
    if not I128_MIN <= value <= I128_MAX:
        raise ValidationError("Amount out of i128 range")
    return value


def require_u64(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("Expiry must be an integer")
    if not 0 <= value <= U64_MAX:
        raise ValidationError("Expiry out of u64 range")
    return value


def require_hash32(value: bytes, name: str = "hash") -> bytes:
    if not isinstance(value, (bytes, bytearray)) or len(value) != HASH_LEN:
        raise ValidationError(f"{name} must be exactly {HASH_LEN} bytes")
    return bytes(value)


def parse_hex32(value: str, name: str = "hash") -> bytes:
    try:
        raw = bytes.fromhex(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{name} must be hex") from exc
    return require_hash32(raw, name)


def parse_int(value: str | int, name: str = "value") -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, int):
        return value
    try:
        return int(str(value), 10)
    except ValueError as exc:
        raise ValidationError(f"{name} must be an integer") from exc
