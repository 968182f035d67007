"""Runtime settings — env-driven.

Centralized settings using pydantic-settings. Reads from a ``.env`` file
and ``STEPFORGE_*`` environment variables; CLI options override them.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from stepforge.core.retry import Backoff
from stepforge.store.memory import DEFAULT_INTERNAL_REGISTRY


class ForgeSettings(BaseSettings):
    """Settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export STEPFORGE_NAMESPACE=ci-op-1234
        export STEPFORGE_LOG_LEVEL=DEBUG
        export STEPFORGE_RETRY_STEPS=10

    Or via .env file::

        STEPFORGE_MAX_WORKERS=8
        STEPFORGE_PUBLIC_REGISTRY=registry.example.com
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="STEPFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"

    # Run defaults
    namespace: str = "stepforge"
    max_workers: int = Field(default=4, ge=1)

    # Conflict retry, shared by every step kind
    retry_steps: int = Field(default=5, ge=1)
    retry_duration: float = Field(default=0.01, ge=0.0)  # seconds
    retry_factor: float = Field(default=1.0, ge=0.0)
    retry_jitter: float = Field(default=0.1, ge=0.0)

    # Registry host names reported by the in-memory store
    internal_registry: str = DEFAULT_INTERNAL_REGISTRY
    public_registry: str = ""

    def backoff(self) -> Backoff:
        """The conflict retry schedule these settings describe."""
        return Backoff(
            steps=self.retry_steps,
            duration=self.retry_duration,
            factor=self.retry_factor,
            jitter=self.retry_jitter,
        )
