"""
Central configuration for optisettle.

This module provides a single, typed configuration object that reads from
environment variables (12-factor style) using pydantic-settings.

Usage:

    from optisettle.core.settings import get_settings

    settings = get_settings()
    period = settings.lifecycle.challenge_period
"""

from __future__ import annotations

import datetime as _dt
from functools import lru_cache
from typing import FrozenSet, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CHALLENGE_PERIOD_SECONDS = 7 * 24 * 60 * 60


class LifecycleSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="OPTISETTLE_")

    challenge_period_seconds: int = Field(
        default=DEFAULT_CHALLENGE_PERIOD_SECONDS,
        ge=0,
        description="Length of the challenge window opened when a batch is verified.",
    )

    @property
    def challenge_period(self) -> _dt.timedelta:
        return _dt.timedelta(seconds=self.challenge_period_seconds)


class StoreSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="OPTISETTLE_STORE_")

    backend: str = Field(
        default="memory",
        description="Store backend: 'memory' or 'sqlite'.",
    )
    sqlite_path: str = Field(
        default=".optisettle/settlement.sqlite",
        description="SQLite database file for the 'sqlite' backend.",
    )
    timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Upper bound on waiting for the store before StoreUnavailableError.",
    )

    @field_validator("backend")
    @classmethod
    def _normalize_backend(cls, v: str) -> str:
        v = (v or "memory").lower()
        if v not in ("memory", "sqlite"):
            raise ValueError("OPTISETTLE_STORE_BACKEND must be 'memory' or 'sqlite'")
        return v


class GatewaySettings(BaseSettings):
    """
    HTTP gateway settings (bind address, operator allow-list).
    """

    model_config = SettingsConfigDict(env_prefix="OPTISETTLE_HTTP_")

    host: str = Field(default="127.0.0.1", description="HTTP bind host for the gateway.")
    port: int = Field(default=8500, description="HTTP bind port for the gateway.")
    operators: str = Field(
        default="",
        description="Comma-separated operator addresses allowed to drive batch transitions.",
    )

    @property
    def operator_set(self) -> FrozenSet[str]:
        return frozenset(x.strip().lower() for x in self.operators.split(",") if x.strip())


class RuntimeSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="OPTISETTLE_")

    log_level: str = Field(
        default="INFO",
        description="Root log level (DEBUG/INFO/WARNING/ERROR).",
    )
    signing_key_file: Optional[str] = Field(
        default=None,
        description="PEM Ed25519 private key used to sign batch root anchors.",
    )


class OptisettleSettings(BaseSettings):
    """
    Root configuration object.

    Aggregates:
      - Lifecycle
      - Store
      - Gateway
      - Runtime
    """

    lifecycle: LifecycleSettings = Field(default_factory=LifecycleSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)


@lru_cache(maxsize=1)
def get_settings() -> OptisettleSettings:
    """Cached accessor for OptisettleSettings."""
    return OptisettleSettings()
