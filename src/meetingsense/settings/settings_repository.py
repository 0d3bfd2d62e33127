"""Persistence for application settings."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from sqlalchemy.orm import Session

from ..db.db_models import SettingModel


class SettingsRepository:
    """Key-value wrapper backed by the app_settings table."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> str | None:
        with self._session_factory() as session:
            model = session.get(SettingModel, key)
            return model.value if model is not None else None

    def read_all(self) -> dict[str, str]:
        with self._session_factory() as session:
            rows = session.query(SettingModel).all()
            return {row.key: row.value for row in rows}

    def upsert(self, key: str, value: str) -> None:
        with self._session_factory() as session:
            model = session.get(SettingModel, key)
            if model is None:
                model = SettingModel(key=key)
            model.value = value
            model.updated_at = datetime.utcnow()
            session.add(model)
            session.commit()
