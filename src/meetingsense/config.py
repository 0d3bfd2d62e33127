"""Application configuration builder."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .analysis.analysis_models import AnalysisLimits
from .analysis.prompts import DEFAULT_MODEL
from .db.db_init import init_db

MB = 1024 * 1024


class AppConfig(BaseSettings):
    """Environment driven settings (``MEETINGSENSE_*``)."""

    model_config = SettingsConfigDict(env_prefix="MEETINGSENSE_")

    database_url: str = Field(default="sqlite:///meetingsense.db")
    upload_dir: Path = Field(default=Path("uploads"))
    default_model: str = Field(default=DEFAULT_MODEL)
    api_base_url: str = Field(
        default="https://generativelanguage.googleapis.com",
        description="Gemini REST endpoint root",
    )
    request_timeout_seconds: float = Field(default=600.0, gt=0)
    keepalive_interval_seconds: float = Field(default=10.0, gt=0)

    inline_limit_bytes: int = Field(default=15 * MB, ge=0)
    inline_fallback_limit_bytes: int = Field(default=20 * MB, ge=0)
    max_images: int = Field(default=40, ge=0)
    max_image_bytes: int = Field(default=int(1.5 * MB), ge=0)
    max_context_chars: int = Field(default=100_000, ge=1)
    poll_interval_seconds: float = Field(default=3.0, ge=0)
    max_poll_attempts: int = Field(default=120, ge=1)
    retry_attempts: int = Field(default=3, ge=1)
    retry_base_seconds: float = Field(default=3.0, ge=0)

    def limits(self) -> AnalysisLimits:
        return AnalysisLimits(
            inline_limit_bytes=self.inline_limit_bytes,
            inline_fallback_limit_bytes=self.inline_fallback_limit_bytes,
            max_images=self.max_images,
            max_image_bytes=self.max_image_bytes,
            max_context_chars=self.max_context_chars,
            poll_interval_seconds=self.poll_interval_seconds,
            max_poll_attempts=self.max_poll_attempts,
            retry_attempts=self.retry_attempts,
            retry_base_seconds=self.retry_base_seconds,
        )


@dataclass(slots=True)
class RuntimeConfig:
    settings: AppConfig
    engine: Engine
    session_factory: sessionmaker[Session]


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url)


def load_config(settings: AppConfig | None = None) -> RuntimeConfig:
    """Load configuration from environment (SQLite by default)."""
    settings = settings or AppConfig()
    settings.upload_dir.mkdir(parents=True, exist_ok=True)

    engine = build_engine(settings.database_url)
    session_factory: sessionmaker[Session] = sessionmaker(bind=engine, expire_on_commit=False)
    init_db(engine)

    return RuntimeConfig(settings=settings, engine=engine, session_factory=session_factory)
