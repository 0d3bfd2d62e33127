"""Settings Provider: credential and model resolution."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from ..analysis.analysis_errors import MissingCredentialError, ProviderError
from ..analysis.analysis_models import ProviderSettings
from ..analysis.prompts import AUDIO_CAPABLE_MODELS, DEFAULT_MODEL
from ..providers.providers_base import ModelProvider
from .settings_repository import SettingsRepository

logger = logging.getLogger(__name__)

API_KEY_ENV = "GEMINI_API_KEY"
API_KEY_SETTING = "gemini_api_key"
MODEL_SETTING = "gemini_model"

MISSING_KEY_MESSAGE = "Gemini API key not configured. Please add it in Settings."


@dataclass(slots=True)
class SettingsService:
    """Read credentials and model preferences fresh on every call."""

    repo: SettingsRepository
    default_model: str = DEFAULT_MODEL
    provider_factory: Callable[[str], ModelProvider] | None = None
    environ: Mapping[str, str] = field(default_factory=lambda: os.environ)

    def active_api_key(self) -> tuple[str | None, str]:
        """Return ``(key, source)`` where source is ``env``, ``db`` or ``none``."""
        env_key = (self.environ.get(API_KEY_ENV) or "").strip()
        if env_key:
            return env_key, "env"
        stored = (self.repo.get(API_KEY_SETTING) or "").strip()
        if stored:
            return stored, "db"
        return None, "none"

    def active_model(self, override: str | None = None) -> str:
        if override and override.strip():
            return override.strip()
        stored = (self.repo.get(MODEL_SETTING) or "").strip()
        return stored or self.default_model

    def resolve(self, model_override: str | None = None) -> ProviderSettings:
        """Freeze the credential and model for one job."""
        api_key, _ = self.active_api_key()
        if not api_key:
            raise MissingCredentialError(MISSING_KEY_MESSAGE)
        return ProviderSettings(api_key=api_key, model=self.active_model(model_override))

    def key_status(self) -> dict[str, object]:
        api_key, source = self.active_api_key()
        return {"configured": api_key is not None, "source": source}

    def save_api_key(self, api_key: str) -> None:
        value = (api_key or "").strip()
        if not value:
            raise ValueError("API key is required")
        self.repo.upsert(API_KEY_SETTING, value)
        logger.info("settings.api_key.saved", extra={"key_length": len(value)})

    def save_model(self, model: str) -> str:
        value = (model or "").strip()
        if not value:
            raise ValueError("Model is required")
        self.repo.upsert(MODEL_SETTING, value)
        logger.info("settings.model.saved", extra={"model": value})
        return value

    def available_models(self) -> list[str]:
        return list(AUDIO_CAPABLE_MODELS)

    async def validate_key(self, api_key: str | None = None) -> tuple[bool, str | None]:
        """Check the provider with ``api_key`` (or the active key)."""
        candidate = (api_key or "").strip() or self.active_api_key()[0]
        if not candidate:
            return False, "No API key provided"
        if self.provider_factory is None:
            raise RuntimeError("provider_factory is not configured")
        try:
            await self.provider_factory(candidate).list_models()
        except ProviderError as exc:
            logger.info("settings.api_key.invalid", extra={"status_code": exc.status_code})
            return False, exc.message
        return True, None
