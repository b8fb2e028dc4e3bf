from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from milkypay.enums import EventTopic
from milkypay.models import ContractEvent

log = logging.getLogger(__name__)


def encode_value(value: Any) -> Any:
    # i128/u64 values are kept as decimal text so JSON consumers never round them
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class EventEmitter:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def publish(self, topic: EventTopic, payload: Sequence[Any]) -> ContractEvent:
        event = ContractEvent(
            topic=topic.value,
            payload_json=[encode_value(value) for value in payload],
            created_at=datetime.utcnow(),
        )
        self.session.add(event)
        await self.session.flush()
        log.debug("event %s #%s %s", topic.value, event.id, event.payload_json)
        return event


async def list_events(session: AsyncSession, since: int = 0, limit: int = 100) -> list[ContractEvent]:
    result = await session.execute(
        select(ContractEvent)
        .where(ContractEvent.id > since)
        .order_by(ContractEvent.id)
        .limit(limit)
    )
    return list(result.scalars().all())
