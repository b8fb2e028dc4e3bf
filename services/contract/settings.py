from __future__ import annotations

from pydantic import Field

from milkypay.config import Settings


class HostSettings(Settings):
    claim_max_attempts: int = Field(5, alias="CLAIM_MAX_ATTEMPTS")
    claim_lock_seconds: int = Field(900, alias="CLAIM_LOCK_SECONDS")
    events_page_size: int = Field(100, alias="EVENTS_PAGE_SIZE")

    host: str = Field("0.0.0.0", alias="HOST")
    port: int = Field(8080, alias="PORT")


def load_settings() -> HostSettings:
    return HostSettings()
