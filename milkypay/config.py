from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = Field(..., alias="DATABASE_URL")
    redis_url: str = Field("redis://localhost:6379/0", alias="REDIS_URL")

    contract_address: str = Field("milkypay_escrow", alias="CONTRACT_ADDRESS")

    auth_max_age_seconds: int = Field(60, alias="AUTH_MAX_AGE_SECONDS")
    nonce_ttl_seconds: int = Field(120, alias="NONCE_TTL_SECONDS")


def load_settings() -> Settings:
    return Settings()
