"""
Worker configuration.

Built once at startup from the environment (after load_dotenv) and handed to
every provider and service constructor. Nothing downstream reads credentials
from os.environ at call time.
"""

from __future__ import annotations

import os
import logging
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

TEXT_PROVIDER_NAMES = ("openai", "gemini", "anthropic")
STORAGE_BACKENDS = ("supabase", "r2")

DEFAULT_BACKGROUND_URL = (
    "https://images.unsplash.com/photo-1557804506-669a67965ba0"
    "?w=1920&h=1080&fit=crop"
)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Upper bound for the script and voice steps ahead of avatar polling.
PRE_AVATAR_SECONDS = 300


class WorkerConfig(BaseModel):
    """Runtime settings for the demo worker."""

    # ── Persistence ──────────────────────────────────────────────────────
    supabase_url: str = Field(default="")
    supabase_service_key: str = Field(default="")

    # ── Text providers ───────────────────────────────────────────────────
    openai_api_key: str = Field(default="")
    openai_model: str = Field(default="gpt-4")
    gemini_api_key: str = Field(default="")
    gemini_model: str = Field(default="gemini-1.5-flash")
    anthropic_api_key: str = Field(default="")
    anthropic_model: str = Field(default="claude-3-sonnet-20240229")
    text_provider_order: list[str] = Field(default_factory=lambda: list(TEXT_PROVIDER_NAMES))

    # ── Speech ───────────────────────────────────────────────────────────
    elevenlabs_api_key: str = Field(default="")
    elevenlabs_model: str = Field(default="eleven_monolingual_v1")

    # ── Avatar ───────────────────────────────────────────────────────────
    tavus_api_key: str = Field(default="")
    tavus_replica_id: str = Field(default="default")
    avatar_background_url: str = Field(default=DEFAULT_BACKGROUND_URL)
    avatar_poll_interval: float = Field(default=10.0)
    avatar_max_poll_attempts: int = Field(default=30)
    conversation_callback_url: str = Field(default="")

    # ── Storage ──────────────────────────────────────────────────────────
    storage_backend: str = Field(default="supabase")
    storage_bucket: str = Field(default="demo-assets")
    r2_account_id: str = Field(default="")
    r2_access_key_id: str = Field(default="")
    r2_secret_access_key: str = Field(default="")
    r2_public_url: str = Field(default="")

    # ── Runtime ──────────────────────────────────────────────────────────
    redis_url: str = Field(default="")
    run_lock_ttl: int = Field(default=900)
    worker_secret: str = Field(default="")
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    @field_validator("avatar_poll_interval")
    @classmethod
    def _positive_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("avatar_poll_interval must be > 0")
        return v

    @field_validator("avatar_max_poll_attempts", "run_lock_ttl")
    @classmethod
    def _at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("storage_backend")
    @classmethod
    def _known_backend(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in STORAGE_BACKENDS:
            raise ValueError(f"storage_backend must be one of {STORAGE_BACKENDS}, got {v!r}")
        return v

    @field_validator("text_provider_order")
    @classmethod
    def _known_providers(cls, v: list[str]) -> list[str]:
        names = [name.strip().lower() for name in v if name.strip()]
        unknown = [name for name in names if name not in TEXT_PROVIDER_NAMES]
        if unknown:
            raise ValueError(f"Unknown text providers: {', '.join(unknown)}")
        return names

    @model_validator(mode="after")
    def _lock_outlives_run(self) -> WorkerConfig:
        needed = self.avatar_poll_budget + PRE_AVATAR_SECONDS
        if self.run_lock_ttl <= needed:
            raise ValueError(
                f"run_lock_ttl ({self.run_lock_ttl}s) must exceed the avatar poll budget "
                f"plus {PRE_AVATAR_SECONDS}s for earlier steps ({needed:g}s)"
            )
        return self

    @classmethod
    def from_env(cls) -> WorkerConfig:
        """Build config from environment variables."""
        order = os.getenv("TEXT_PROVIDER_ORDER", ",".join(TEXT_PROVIDER_NAMES))
        return cls(
            supabase_url=os.getenv("SUPABASE_URL", ""),
            supabase_service_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY", ""),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4"),
            gemini_api_key=os.getenv("GOOGLE_GEMINI_API_KEY") or os.getenv("GEMINI_API_KEY", ""),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-1.5-flash"),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
            anthropic_model=os.getenv("ANTHROPIC_MODEL", "claude-3-sonnet-20240229"),
            text_provider_order=order.split(","),
            elevenlabs_api_key=os.getenv("ELEVENLABS_API_KEY", ""),
            elevenlabs_model=os.getenv("ELEVENLABS_MODEL", "eleven_monolingual_v1"),
            tavus_api_key=os.getenv("TAVUS_API_KEY", ""),
            tavus_replica_id=os.getenv("TAVUS_REPLICA_ID", "default"),
            avatar_background_url=os.getenv("TAVUS_BACKGROUND_URL", DEFAULT_BACKGROUND_URL),
            avatar_poll_interval=float(os.getenv("AVATAR_POLL_INTERVAL", "10")),
            avatar_max_poll_attempts=int(os.getenv("AVATAR_MAX_POLL_ATTEMPTS", "30")),
            conversation_callback_url=os.getenv("TAVUS_CALLBACK_URL", ""),
            storage_backend=os.getenv("STORAGE_BACKEND", "supabase"),
            storage_bucket=os.getenv("STORAGE_BUCKET", "demo-assets"),
            r2_account_id=os.getenv("R2_ACCOUNT_ID", ""),
            r2_access_key_id=os.getenv("R2_ACCESS_KEY_ID", ""),
            r2_secret_access_key=os.getenv("R2_SECRET_ACCESS_KEY", ""),
            r2_public_url=os.getenv("R2_PUBLIC_URL", ""),
            redis_url=os.getenv("REDIS_URL", ""),
            run_lock_ttl=int(os.getenv("RUN_LOCK_TTL_SECONDS", "900")),
            worker_secret=os.getenv("WORKER_SHARED_SECRET", ""),
            environment=os.getenv("ENVIRONMENT", "development"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    @property
    def configured_text_providers(self) -> list[str]:
        """Provider names from the configured order that have a credential."""
        keys = {
            "openai": self.openai_api_key,
            "gemini": self.gemini_api_key,
            "anthropic": self.anthropic_api_key,
        }
        return [name for name in self.text_provider_order if keys.get(name)]

    @property
    def avatar_poll_budget(self) -> float:
        return self.avatar_max_poll_attempts * self.avatar_poll_interval

    @property
    def avatar_enabled(self) -> bool:
        return bool(self.tavus_api_key)

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


# Singleton, built on first access.
_config: Optional[WorkerConfig] = None


def get_config() -> WorkerConfig:
    """Return the process-wide config, building it from the environment once."""
    global _config
    if _config is None:
        _config = WorkerConfig.from_env()
    return _config


def set_config(config: Optional[WorkerConfig]) -> None:
    """Replace the process-wide config (None resets to lazy env loading)."""
    global _config
    _config = config


def configure_logging(level: str = "INFO") -> None:
    """Install the root handler once; later calls only adjust the level."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger().setLevel(level.upper())
