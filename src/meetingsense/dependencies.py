"""Dependency wiring helpers."""

from fastapi import FastAPI

from .analysis.analysis_api import router as analysis_router
from .analysis.analysis_models import ProviderSettings
from .analysis.analysis_service import AnalysisService
from .config import RuntimeConfig
from .providers.providers_gemini import GeminiClient
from .repositories.meeting_repository import MeetingRepository
from .settings.settings_api import router as settings_router
from .settings.settings_repository import SettingsRepository
from .settings.settings_service import SettingsService


def include_routers(app: FastAPI, config: RuntimeConfig) -> None:
    """Mount module routers and attach services."""
    settings = config.settings

    def gemini_for_key(api_key: str) -> GeminiClient:
        return GeminiClient(
            api_key=api_key,
            api_base_url=settings.api_base_url,
            timeout_seconds=settings.request_timeout_seconds,
        )

    def gemini_for_job(provider_settings: ProviderSettings) -> GeminiClient:
        return gemini_for_key(provider_settings.api_key)

    meeting_repo = MeetingRepository(config.session_factory)
    settings_service = SettingsService(
        repo=SettingsRepository(config.session_factory),
        default_model=settings.default_model,
        provider_factory=gemini_for_key,
    )
    analysis_service = AnalysisService(
        meetings=meeting_repo,
        settings=settings_service,
        provider_factory=gemini_for_job,
        limits=settings.limits(),
        keepalive_interval=settings.keepalive_interval_seconds,
    )

    app.state.config = config
    app.state.meeting_repo = meeting_repo
    app.state.settings_service = settings_service
    app.state.analysis_service = analysis_service
    app.state.analysis_tasks = set()

    app.include_router(analysis_router)
    app.include_router(settings_router)
