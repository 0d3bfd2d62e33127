from __future__ import annotations

import pytest

from meetingsense.analysis.analysis_errors import MissingCredentialError
from meetingsense.analysis.prompts import AUDIO_CAPABLE_MODELS, DEFAULT_MODEL
from meetingsense.settings.settings_repository import SettingsRepository
from meetingsense.settings.settings_service import (
    API_KEY_SETTING,
    MISSING_KEY_MESSAGE,
    SettingsService,
)
from tests.mocks.gemini import ScriptedProvider, provider_error


def test_environment_key_wins_over_stored_key(settings_repo: SettingsRepository) -> None:
    settings_repo.upsert(API_KEY_SETTING, "db-key")
    service = SettingsService(settings_repo, environ={"GEMINI_API_KEY": " env-key "})

    assert service.active_api_key() == ("env-key", "env")
    assert service.key_status() == {"configured": True, "source": "env"}


def test_stored_key_is_used_without_environment(settings_repo: SettingsRepository) -> None:
    service = SettingsService(settings_repo, environ={})
    service.save_api_key("  db-key ")

    assert service.active_api_key() == ("db-key", "db")
    assert settings_repo.get(API_KEY_SETTING) == "db-key"


def test_resolve_without_key_raises(settings_repo: SettingsRepository) -> None:
    service = SettingsService(settings_repo, environ={"GEMINI_API_KEY": "   "})

    with pytest.raises(MissingCredentialError, match=MISSING_KEY_MESSAGE):
        service.resolve()
    assert service.key_status() == {"configured": False, "source": "none"}


def test_resolve_reads_settings_fresh(settings_repo: SettingsRepository) -> None:
    environ: dict[str, str] = {}
    service = SettingsService(settings_repo, environ=environ)
    service.save_api_key("first")
    first = service.resolve()

    service.save_api_key("second")
    service.save_model("gemini-2.5-pro")

    assert first.api_key == "first"
    assert first.model == DEFAULT_MODEL
    second = service.resolve()
    assert (second.api_key, second.model) == ("second", "gemini-2.5-pro")
    assert service.resolve("gemini-2.0-flash").model == "gemini-2.0-flash"


def test_blank_values_are_rejected(settings_repo: SettingsRepository) -> None:
    service = SettingsService(settings_repo, environ={})

    with pytest.raises(ValueError):
        service.save_api_key("  ")
    with pytest.raises(ValueError):
        service.save_model("")


def test_available_models_lists_audio_capable_models(settings_repo: SettingsRepository) -> None:
    service = SettingsService(settings_repo, environ={})

    assert service.available_models() == list(AUDIO_CAPABLE_MODELS)
    assert DEFAULT_MODEL in service.available_models()


@pytest.mark.asyncio
async def test_validate_key_calls_provider(settings_repo: SettingsRepository) -> None:
    checked: list[str] = []

    def factory(api_key: str) -> ScriptedProvider:
        checked.append(api_key)
        return ScriptedProvider()

    service = SettingsService(settings_repo, provider_factory=factory, environ={"GEMINI_API_KEY": "env"})

    assert await service.validate_key("candidate") == (True, None)
    assert await service.validate_key() == (True, None)
    assert checked == ["candidate", "env"]


@pytest.mark.asyncio
async def test_validate_key_reports_provider_error(settings_repo: SettingsRepository) -> None:
    class RejectingProvider(ScriptedProvider):
        async def list_models(self) -> list[str]:
            raise provider_error(400, "INVALID_ARGUMENT", "API key not valid.")

    service = SettingsService(
        settings_repo, provider_factory=lambda _: RejectingProvider(), environ={}
    )

    valid, error = await service.validate_key("bad")

    assert valid is False
    assert error == "[400 INVALID_ARGUMENT] API key not valid."
    assert await service.validate_key() == (False, "No API key provided")
