from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from milkypay.errors import DuplicateIdentifier, NotFound, ValidationError
from milkypay.models import Escrow


@dataclass(frozen=True)
class EscrowRecord:
    sender: str
    asset: str
    amount: int
    pin_hash: bytes
    expiry: int
    claimed: bool = False

    @classmethod
    def from_row(cls, row: Escrow) -> "EscrowRecord":
        return cls(
            sender=row.sender,
            asset=row.asset,
            amount=row.amount,
            pin_hash=bytes(row.pin_hash),
            expiry=row.expiry,
            claimed=row.claimed,
        )

    def resolved(self) -> "EscrowRecord":
        return replace(self, claimed=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sender": self.sender,
            "asset": self.asset,
            "amount": str(self.amount),
            "pin_hash": self.pin_hash.hex(),
            "expiry": str(self.expiry),
            "claimed": self.claimed,
        }


class EscrowRegistry:
    """Payment id -> escrow record, read and written straight through the session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def exists(self, payment_id: str) -> bool:
        result = await self.session.execute(
            select(Escrow.payment_id).where(Escrow.payment_id == payment_id)
        )
        return result.scalar_one_or_none() is not None

    async def get(self, payment_id: str) -> EscrowRecord | None:
        row = await self.session.get(Escrow, payment_id)
        if row is None:
            return None
        return EscrowRecord.from_row(row)

    async def get_for_update(self, payment_id: str) -> EscrowRecord:
        result = await self.session.execute(
            select(Escrow).where(Escrow.payment_id == payment_id).with_for_update()
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFound(f"Escrow {payment_id} not found")
        return EscrowRecord.from_row(row)

    async def put(self, payment_id: str, record: EscrowRecord) -> None:
        row = await self.session.get(Escrow, payment_id)
        if row is None:
            self.session.add(
                Escrow(
                    payment_id=payment_id,
                    sender=record.sender,
                    asset=record.asset,
                    amount=record.amount,
                    pin_hash=record.pin_hash,
                    expiry=record.expiry,
                    claimed=record.claimed,
                    created_at=datetime.utcnow(),
                    updated_at=datetime.utcnow(),
                )
            )
            try:
                await self.session.flush()
            except IntegrityError as exc:
                raise DuplicateIdentifier(f"Escrow {payment_id} already exists") from exc
            return

        if EscrowRecord.from_row(row) == record:
            return
        if replace(EscrowRecord.from_row(row), claimed=record.claimed) != record:
            raise ValidationError(f"Escrow {payment_id} terms are immutable")
        row.claimed = record.claimed
        row.updated_at = datetime.utcnow()
        self.session.add(row)
        await self.session.flush()
