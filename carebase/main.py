# carebase/main.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine

from carebase.api.exception_handlers import register_exception_handlers
from carebase.api.router import api_router
from carebase.core.config import Settings, settings as default_settings
from carebase.db.session import make_engine, make_session_factory


def create_app(cfg: Optional[Settings] = None,
               engine: Optional[Engine] = None) -> FastAPI:
    """
    Build the API. The engine and session factory live on ``app.state`` and
    reach the services through the ``get_db`` dependency.
    """
    cfg = cfg or default_settings
    logging.basicConfig(level=cfg.LOG_LEVEL)

    app = FastAPI(
        title=cfg.PROJECT_NAME,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.engine = engine or make_engine(cfg.DATABASE_URL)
    app.state.session_factory = make_session_factory(app.state.engine)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(api_router, prefix=cfg.API_PREFIX)

    # Health
    @app.get("/")
    def root():
        return {"message": f"{cfg.PROJECT_NAME} running", "version": "v1"}

    return app
