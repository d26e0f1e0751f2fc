"""Application configuration."""

import os
from enum import Enum

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class RegistrationFailurePolicy(Enum):
    """How a failed identity registration is presented."""

    CONFIRM = "confirm"
    BLOCK = "block"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    access_service_url: str = "https://access.web3.storage"
    upload_service_url: str = "https://up.web3.storage"
    gateway_origin: str = "https://w3s.link/ipfs"
    verification_timeout_seconds: float = 900
    verification_poll_interval_seconds: float = 2.0
    fetch_timeout_seconds: float = 20
    max_concurrent_fetches: int = 8
    chunk_size_bytes: int = 1024 * 1024
    max_block_size_bytes: int = 256 * 1024
    registration_failure_policy: str = RegistrationFailurePolicy.CONFIRM.value
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_registration_policy(raw: str | None) -> RegistrationFailurePolicy:
    """Parse the registration failure policy, defaulting to confirm."""
    if raw is None:
        return RegistrationFailurePolicy.CONFIRM
    cleaned = raw.strip().lower()
    if cleaned in {"", "log", "confirm"}:
        return RegistrationFailurePolicy.CONFIRM
    if cleaned in {"block", "fail"}:
        return RegistrationFailurePolicy.BLOCK
    raise ValueError(f"Unknown registration failure policy: {raw}")
