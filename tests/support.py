from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Sequence

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from milkypay.auth import Authorization, AuthorizationGate, address_from_private_key, sign_invocation
from milkypay.clock import FixedClock
from milkypay.contract import EscrowContract
from milkypay.db import create_engine, create_schema, create_session_factory
from milkypay.enums import ContractFunction
from milkypay.events import list_events
from milkypay.models import ContractEvent
from milkypay.token import LedgerTokenClient

CONTRACT = "milkypay_escrow"
START = 1_700_000_000


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.closed = False

    async def setnx(self, key, value):
        if key in self.store:
            return False
        self.store[key] = value
        return True

    async def expire(self, key, ttl):
        return True

    async def get(self, key):
        return self.store.get(key)

    async def incr(self, key):
        self.store[key] = int(self.store.get(key, 0)) + 1
        return self.store[key]

    async def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0

    async def aclose(self):
        self.closed = True


@dataclass
class Party:
    key: Ed25519PrivateKey = field(default_factory=Ed25519PrivateKey.generate)

    @property
    def address(self) -> str:
        return address_from_private_key(self.key)


@dataclass
class Harness:
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    redis: FakeRedis
    clock: FixedClock
    gate: AuthorizationGate
    contract: EscrowContract

    def sign(self, party: Party, function: ContractFunction, args: Sequence[Any]) -> Authorization:
        return sign_invocation(party.key, CONTRACT, function.value, args, self.clock.timestamp())

    async def create(self, sender: Party, payment_id, asset, pin_hash, amount, expiry) -> None:
        args = [sender.address, payment_id, asset, pin_hash, amount, expiry]
        await self.contract.create_escrow(
            *args, auths=[self.sign(sender, ContractFunction.CREATE_ESCROW, args)]
        )

    async def claim(self, claimant: Party, payment_id, preimage) -> None:
        args = [claimant.address, payment_id, preimage]
        await self.contract.claim_escrow(
            *args, auths=[self.sign(claimant, ContractFunction.CLAIM_ESCROW, args)]
        )

    async def refund(self, caller: Party, payment_id) -> None:
        args = [caller.address, payment_id]
        await self.contract.refund_escrow(
            *args, auths=[self.sign(caller, ContractFunction.REFUND_ESCROW, args)]
        )

    async def mint(self, asset: str, account: str, amount: int) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                await LedgerTokenClient(session, asset).mint(account, amount)

    async def freeze(self, asset: str, account: str) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                await LedgerTokenClient(session, asset).set_authorized(account, False)

    async def balance(self, asset: str, account: str) -> int:
        async with self.session_factory() as session:
            return await LedgerTokenClient(session, asset).balance(account)

    async def events(self) -> list[ContractEvent]:
        async with self.session_factory() as session:
            return await list_events(session)


@asynccontextmanager
async def build_harness():
    engine = create_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_schema(engine)
    session_factory = create_session_factory(engine)
    redis = FakeRedis()
    clock = FixedClock(now=START)
    gate = AuthorizationGate(redis, clock, CONTRACT)
    contract = EscrowContract(session_factory, gate, clock, CONTRACT)
    try:
        yield Harness(engine, session_factory, redis, clock, gate, contract)
    finally:
        await engine.dispose()
