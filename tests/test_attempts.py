import asyncio

import pytest

from milkypay.attempts import check_claim_attempts, record_failed_claim, reset_claim_attempts
from milkypay.errors import ClaimLocked
from support import FakeRedis

ALICE = "aa" * 32
BOB = "bb" * 32


def test_claim_locks_after_max_attempts():
    redis = FakeRedis()

    async def run():
        for _ in range(3):
            await check_claim_attempts(redis, "pay1", ALICE, 3)
            await record_failed_claim(redis, "pay1", ALICE, 60)
        with pytest.raises(ClaimLocked):
            await check_claim_attempts(redis, "pay1", ALICE, 3)
        await check_claim_attempts(redis, "pay2", ALICE, 3)

    asyncio.run(run())


def test_lock_is_per_claimant():
    redis = FakeRedis()

    async def run():
        await record_failed_claim(redis, "pay1", ALICE, 60)
        with pytest.raises(ClaimLocked):
            await check_claim_attempts(redis, "pay1", ALICE, 1)
        await check_claim_attempts(redis, "pay1", BOB, 1)

    asyncio.run(run())


def test_reset_clears_attempts():
    redis = FakeRedis()

    async def run():
        await record_failed_claim(redis, "pay1", ALICE, 60)
        await reset_claim_attempts(redis, "pay1", ALICE)
        await check_claim_attempts(redis, "pay1", ALICE, 1)

    asyncio.run(run())
