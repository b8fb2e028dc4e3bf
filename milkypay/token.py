from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from milkypay.errors import TransferError
from milkypay.models import TokenBalance
from milkypay.validation import I128_MAX

log = logging.getLogger(__name__)


class TokenClient(Protocol):
    asset: str

    async def balance(self, account: str) -> int: ...
    async def transfer(self, source: str, destination: str, amount: int) -> None: ...


class LedgerTokenClient:
    """Fungible-asset ledger kept in ``token_balances`` inside the caller's transaction.

    Balances move only when the surrounding transaction commits, so a failed
    invocation leaves every balance where it was.
    """

    def __init__(self, session: AsyncSession, asset: str) -> None:
        self.session = session
        self.asset = asset

    async def _get_row(self, account: str) -> TokenBalance | None:
        result = await self.session.execute(
            select(TokenBalance)
            .where(TokenBalance.asset == self.asset, TokenBalance.account == account)
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def _lock_rows(self, *accounts: str) -> dict[str, TokenBalance]:
        # one locking read in account order, so concurrent transfers never deadlock
        result = await self.session.execute(
            select(TokenBalance)
            .where(TokenBalance.asset == self.asset, TokenBalance.account.in_(sorted(set(accounts))))
            .order_by(TokenBalance.account)
            .with_for_update()
        )
        return {row.account: row for row in result.scalars().all()}

    def _new_row(self, account: str) -> TokenBalance:
        row = TokenBalance(
            asset=self.asset,
            account=account,
            amount=0,
            authorized=True,
            updated_at=datetime.utcnow(),
        )
        self.session.add(row)
        return row

    async def _get_or_create_row(self, account: str) -> TokenBalance:
        row = await self._get_row(account)
        if row is not None:
            return row
        row = self._new_row(account)
        await self.session.flush()
        return row

    async def balance(self, account: str) -> int:
        row = await self._get_row(account)
        return row.amount if row else 0

    async def transfer(self, source: str, destination: str, amount: int) -> None:
        if amount < 0:
            raise TransferError("Negative amount is not allowed")
        rows = await self._lock_rows(source, destination)
        src = rows.get(source)
        if src is not None and not src.authorized:
            raise TransferError(f"Balance of {source} is frozen for {self.asset}")
        available = src.amount if src else 0
        if available < amount:
            raise TransferError(
                f"Insufficient {self.asset} balance for {source}: {available} < {amount}"
            )
        dst = rows.get(destination)
        if dst is None:
            dst = self._new_row(destination)
        if not dst.authorized:
            raise TransferError(f"Balance of {destination} is frozen for {self.asset}")
        if src is None or src is dst or amount == 0:
            await self.session.flush()
            return
        if dst.amount + amount > I128_MAX:
            raise TransferError("Balance overflow")
        now = datetime.utcnow()
        src.amount = src.amount - amount
        src.updated_at = now
        dst.amount = dst.amount + amount
        dst.updated_at = now
        self.session.add_all([src, dst])
        await self.session.flush()
        log.debug("transfer %s %s %s -> %s", amount, self.asset, source, destination)

    async def mint(self, to: str, amount: int) -> int:
        if amount < 0:
            raise TransferError("Negative amount is not allowed")
        row = await self._get_or_create_row(to)
        if row.amount + amount > I128_MAX:
            raise TransferError("Balance overflow")
        row.amount = row.amount + amount
        row.updated_at = datetime.utcnow()
        self.session.add(row)
        await self.session.flush()
        return row.amount

    async def set_authorized(self, account: str, authorized: bool) -> None:
        row = await self._get_or_create_row(account)
        row.authorized = authorized
        row.updated_at = datetime.utcnow()
        self.session.add(row)
        await self.session.flush()
