from __future__ import annotations

from typing import Protocol

from milkypay.errors import ClaimLocked


class RedisCounter(Protocol):
    async def get(self, key: str) -> str | None: ...
    async def incr(self, key: str) -> int: ...
    async def expire(self, key: str, ttl: int) -> bool: ...
    async def delete(self, key: str) -> int: ...


def attempts_key(payment_id: str, claimant: str) -> str:
    return f"claim:attempts:{payment_id}:{claimant}"


async def check_claim_attempts(redis: RedisCounter, payment_id: str, claimant: str, max_attempts: int) -> None:
    count = int(await redis.get(attempts_key(payment_id, claimant)) or 0)
    if count >= max_attempts:
        raise ClaimLocked("Too many incorrect attempts. Claim is locked.")


async def record_failed_claim(redis: RedisCounter, payment_id: str, claimant: str, lock_seconds: int) -> int:
    key = attempts_key(payment_id, claimant)
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, lock_seconds)
    return count


async def reset_claim_attempts(redis: RedisCounter, payment_id: str, claimant: str) -> None:
    await redis.delete(attempts_key(payment_id, claimant))
