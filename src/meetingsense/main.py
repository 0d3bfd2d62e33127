"""FastAPI application entry point."""

import os
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI
from sqlalchemy import text

from .config import RuntimeConfig, load_config
from .dependencies import include_routers
from .logging import configure_logging


def create_app(config: RuntimeConfig | None = None) -> FastAPI:
    """Build FastAPI instance with configured dependencies."""
    configure_logging()
    cfg = config or load_config()
    app = FastAPI(title="MeetingSense")
    include_routers(app, cfg)

    @app.get("/api/health", tags=["health"])
    def health() -> dict[str, str]:
        with cfg.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {
            "status": "ok",
            "database": "connected",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


def run() -> None:
    """Serve the app with uvicorn (``PORT`` env, default 3001)."""
    uvicorn.run(
        "meetingsense.main:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3001")),
    )
