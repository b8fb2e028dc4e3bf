from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from milkypay.auth import Authorization, AuthorizationGate
from milkypay.clock import LedgerClock
from milkypay.enums import ContractFunction, EscrowState, EventTopic
from milkypay.errors import (
    AuthorizationError,
    DuplicateIdentifier,
    EscrowError,
    InvalidPreimage,
    NotYetExpired,
    WrongSender,
)
from milkypay.events import EventEmitter
from milkypay.hashing import verify_preimage
from milkypay.models import Escrow
from milkypay.registry import EscrowRecord, EscrowRegistry
from milkypay.state_machine import state_of, validate_transition
from milkypay.token import LedgerTokenClient, TokenClient
from milkypay.validation import (
    require_address,
    require_asset,
    require_hash32,
    require_i128,
    require_payment_id,
    require_u64,
)

log = logging.getLogger(__name__)

TokenFactory = Callable[[AsyncSession, str], TokenClient]


class EscrowContract:
    """PIN-locked escrow: create, claim with the preimage, or refund after expiry.

    Every mutating call is one transaction. Registry writes, balance moves and
    events either all commit or the error propagates and none of them do.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        gate: AuthorizationGate,
        clock: LedgerClock,
        contract_address: str,
        token_factory: TokenFactory = LedgerTokenClient,
    ) -> None:
        self.session_factory = session_factory
        self.gate = gate
        self.clock = clock
        self.contract_address = contract_address
        self.token_factory = token_factory

    async def _authorize(
        self,
        address: str,
        function: ContractFunction,
        args: list,
        auths: Sequence[Authorization],
    ) -> None:
        result = await self.gate.require_auth(address, function.value, args, auths)
        if not result.ok:
            log.warning("%s rejected for %s: %s", function.value, address, result.reason)
            raise AuthorizationError(result.reason)

    @asynccontextmanager
    async def _transaction(self, function: ContractFunction, payment_id: str) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    yield session
            except EscrowError as exc:
                log.warning("%s %s aborted: %s %s", function.value, payment_id, exc.code, exc)
                raise

    async def create_escrow(
        self,
        sender: str,
        payment_id: str,
        asset: str,
        pin_hash: bytes,
        amount: int,
        expiry: int,
        *,
        auths: Sequence[Authorization] = (),
    ) -> None:
        require_address(sender, "sender")
        require_payment_id(payment_id)
        require_asset(asset)
        pin_hash = require_hash32(pin_hash, "pin_hash")
        require_i128(amount)
        require_u64(expiry)

        await self._authorize(
            sender,
            ContractFunction.CREATE_ESCROW,
            [sender, payment_id, asset, pin_hash, amount, expiry],
            auths,
        )

        async with self._transaction(ContractFunction.CREATE_ESCROW, payment_id) as session:
            registry = EscrowRegistry(session)
            if await registry.exists(payment_id):
                raise DuplicateIdentifier(f"Escrow {payment_id} already exists")
            record = EscrowRecord(
                sender=sender,
                asset=asset,
                amount=amount,
                pin_hash=pin_hash,
                expiry=expiry,
                claimed=False,
            )
            await registry.put(payment_id, record)

            token = self.token_factory(session, asset)
            await token.transfer(sender, self.contract_address, amount)

            await EventEmitter(session).publish(
                EventTopic.ESCROW_CREATED,
                [payment_id, sender, asset, amount, expiry],
            )
        log.info("escrow %s created by %s: %s %s until %s", payment_id, sender, amount, asset, expiry)

    async def claim_escrow(
        self,
        claimant: str,
        payment_id: str,
        pin_preimage: bytes,
        *,
        auths: Sequence[Authorization] = (),
    ) -> None:
        require_address(claimant, "claimant")
        require_payment_id(payment_id)
        pin_preimage = require_hash32(pin_preimage, "pin_preimage")

        await self._authorize(
            claimant,
            ContractFunction.CLAIM_ESCROW,
            [claimant, payment_id, pin_preimage],
            auths,
        )

        async with self._transaction(ContractFunction.CLAIM_ESCROW, payment_id) as session:
            registry = EscrowRegistry(session)
            record = await registry.get_for_update(payment_id)
            validate_transition(state_of(record.claimed), EscrowState.RESOLVED)
            if not verify_preimage(pin_preimage, record.pin_hash):
                raise InvalidPreimage("Invalid PIN")

            token = self.token_factory(session, record.asset)
            await token.transfer(self.contract_address, claimant, record.amount)

            await registry.put(payment_id, record.resolved())

            await EventEmitter(session).publish(EventTopic.ESCROW_CLAIMED, [payment_id, claimant])
        log.info("escrow %s claimed by %s", payment_id, claimant)

    async def refund_escrow(
        self,
        sender: str,
        payment_id: str,
        *,
        auths: Sequence[Authorization] = (),
    ) -> None:
        require_address(sender, "sender")
        require_payment_id(payment_id)

        await self._authorize(
            sender,
            ContractFunction.REFUND_ESCROW,
            [sender, payment_id],
            auths,
        )

        async with self._transaction(ContractFunction.REFUND_ESCROW, payment_id) as session:
            registry = EscrowRegistry(session)
            record = await registry.get_for_update(payment_id)
            if self.clock.timestamp() < record.expiry:
                raise NotYetExpired(f"Escrow {payment_id} expires at {record.expiry}")
            validate_transition(state_of(record.claimed), EscrowState.RESOLVED)
            if sender != record.sender:
                raise WrongSender("Only original sender can refund")

            token = self.token_factory(session, record.asset)
            await token.transfer(self.contract_address, sender, record.amount)

            await registry.put(payment_id, record.resolved())

            await EventEmitter(session).publish(EventTopic.ESCROW_REFUNDED, [payment_id])
        log.info("escrow %s refunded to %s", payment_id, sender)

    async def get_escrow(self, payment_id: str) -> EscrowRecord | None:
        require_payment_id(payment_id)
        async with self.session_factory() as session:
            return await EscrowRegistry(session).get(payment_id)

    async def custody_balance(self, asset: str) -> int:
        async with self.session_factory() as session:
            return await self.token_factory(session, asset).balance(self.contract_address)

    async def outstanding_amount(self, asset: str) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(Escrow.amount).where(Escrow.asset == asset, Escrow.claimed.is_(False))
            )
            return sum(result.scalars().all())
