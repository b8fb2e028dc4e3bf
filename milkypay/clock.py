from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol


class LedgerClock(Protocol):
    def timestamp(self) -> int: ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SystemClock:
    def timestamp(self) -> int:
        return int(utc_now().timestamp())


@dataclass
class FixedClock:
    now: int = 0

    def timestamp(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now
