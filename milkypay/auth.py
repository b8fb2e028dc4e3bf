"""
Authorization gate.

An invocation carries a list of ``Authorization`` entries, each an Ed25519
signature by one account over the exact call it consents to:

    contract|function|arg1|...|argN|timestamp|nonce

Arguments are rendered canonically (bytes as lowercase hex, ints in base
10, bools as ``true``/``false``). The gate accepts an authorization for a
role only when the signer matches, the function and arguments are exactly
the ones being executed, the timestamp is fresh against ledger time, the
signature verifies and the nonce has never been used.
"""

from __future__ import annotations

import base64
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Protocol, Sequence

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from milkypay.clock import LedgerClock
from milkypay.validation import validate_address


class RedisLike(Protocol):
    async def setnx(self, key: str, value: str) -> bool: ...
    async def expire(self, key: str, ttl: int) -> bool: ...


def encode_arg(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def invocation_message(
    contract: str,
    function: str,
    args: Iterable[str],
    timestamp: int,
    nonce: str,
) -> str:
    return "|".join([contract, function, *args, str(timestamp), nonce])


@dataclass(frozen=True)
class Authorization:
    address: str
    function: str
    args: tuple[str, ...]
    timestamp: int
    nonce: str
    signature: str

    def message(self, contract: str) -> str:
        return invocation_message(contract, self.function, self.args, self.timestamp, self.nonce)

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "function": self.function,
            "args": list(self.args),
            "timestamp": self.timestamp,
            "nonce": self.nonce,
            "signature": self.signature,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Authorization":
        return cls(
            address=str(data["address"]),
            function=str(data["function"]),
            args=tuple(str(arg) for arg in data.get("args", [])),
            timestamp=int(data["timestamp"]),
            nonce=str(data["nonce"]),
            signature=str(data["signature"]),
        )


@dataclass(frozen=True)
class AuthResult:
    ok: bool
    address: str
    reason: str = ""


def address_from_public_key(public_key: Ed25519PublicKey) -> str:
    return public_key.public_bytes(Encoding.Raw, PublicFormat.Raw).hex()


def address_from_private_key(private_key: Ed25519PrivateKey) -> str:
    return address_from_public_key(private_key.public_key())


def generate_nonce() -> str:
    return base64.urlsafe_b64encode(os.urandom(18)).decode("utf-8")


def sign_invocation(
    private_key: Ed25519PrivateKey,
    contract: str,
    function: str,
    args: Sequence[Any],
    timestamp: int,
    nonce: str | None = None,
) -> Authorization:
    encoded = tuple(encode_arg(arg) for arg in args)
    nonce = nonce or generate_nonce()
    message = invocation_message(contract, function, encoded, timestamp, nonce)
    signature = private_key.sign(message.encode("utf-8")).hex()
    return Authorization(
        address=address_from_private_key(private_key),
        function=function,
        args=encoded,
        timestamp=timestamp,
        nonce=nonce,
        signature=signature,
    )


def verify_timestamp(timestamp: int, now: int, max_age_seconds: int) -> None:
    if abs(now - timestamp) > max_age_seconds:
        raise ValueError("Timestamp expired")


def verify_signature(address: str, message: str, signature: str) -> None:
    if not validate_address(address):
        raise ValueError("Invalid signer address")
    try:
        public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(address))
        public_key.verify(bytes.fromhex(signature), message.encode("utf-8"))
    except (InvalidSignature, ValueError) as exc:
        raise ValueError("Invalid signature") from exc


async def verify_nonce(redis: RedisLike, address: str, nonce: str, ttl: int) -> None:
    key = f"nonce:{address}:{nonce}"
    exists = await redis.setnx(key, "1")
    if not exists:
        raise ValueError("Replay detected")
    await redis.expire(key, ttl)


class AuthorizationGate:
    def __init__(
        self,
        redis: RedisLike,
        clock: LedgerClock,
        contract_address: str,
        max_age_seconds: int = 60,
        nonce_ttl_seconds: int = 120,
    ) -> None:
        self.redis = redis
        self.clock = clock
        self.contract_address = contract_address
        self.max_age_seconds = max_age_seconds
        self.nonce_ttl_seconds = nonce_ttl_seconds

    async def require_auth(
        self,
        address: str,
        function: str,
        args: Sequence[Any],
        auths: Sequence[Authorization],
    ) -> AuthResult:
        encoded = tuple(encode_arg(arg) for arg in args)
        signed_by_address = [auth for auth in auths if auth.address == address]
        if not signed_by_address:
            return AuthResult(False, address, "Missing authorization")
        match = next(
            (auth for auth in signed_by_address if auth.function == function and auth.args == encoded),
            None,
        )
        if match is None:
            return AuthResult(False, address, "Authorization does not cover this invocation")

        message = invocation_message(
            self.contract_address, function, encoded, match.timestamp, match.nonce
        )
        try:
            verify_timestamp(match.timestamp, self.clock.timestamp(), self.max_age_seconds)
            verify_signature(address, message, match.signature)
            await verify_nonce(self.redis, address, match.nonce, self.nonce_ttl_seconds)
        except ValueError as exc:
            return AuthResult(False, address, str(exc))
        return AuthResult(True, address)
