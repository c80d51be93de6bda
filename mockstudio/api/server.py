"""
Mock Studio — FastAPI Server (environment control plane)
Provides the REST API used by the UI, the mock service launcher and the
request dispatcher: environments, active selection, export/import and
layered config/variable resolution.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from mockstudio.config.settings import Settings, settings as default_settings
from mockstudio.environments.environment_store import EnvironmentStore
from mockstudio.storage import RedisStore, build_kv_store
from mockstudio.api.routes_environments import router as environments_router

logger = logging.getLogger(__name__)

_openapi_tags = [
    {"name": "System", "description": "Health checks, storage notifications"},
    {"name": "Environments", "description": "Environment management — CRUD, active selection, export/import, overrides"},
    {"name": "Resolution", "description": "Layered service config and {{variable}} resolution for the active environment"},
]


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(store: Optional[EnvironmentStore] = None,
               app_settings: Optional[Settings] = None) -> FastAPI:
    """Build the API. Without an explicit store one is created from settings at startup."""
    cfg = app_settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize and teardown the environment store."""
        if getattr(app.state, "environment_store", None) is None:
            storage = build_kv_store(cfg)
            app.state.environment_store = EnvironmentStore.from_settings(storage, cfg)
            logger.info(f"[MOCK STUDIO] Storage backend: {storage.name}")
        env_store = app.state.environment_store
        logger.info(f"[MOCK STUDIO] {len(env_store.list())} environments loaded, active={env_store.active_id}")
        yield
        if isinstance(env_store.storage, RedisStore):
            env_store.storage.disconnect()

    app = FastAPI(
        title="Mock Studio",
        description="Environment-aware configuration for local mock and proxy services.",
        version="1.0.0",
        lifespan=lifespan,
        openapi_tags=_openapi_tags,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = cfg
    app.state.environment_store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["System"])
    async def health(request: Request):
        env_store = request.app.state.environment_store
        return {
            "status": "ok",
            "storage": env_store.storage.name if env_store else None,
            "environments": len(env_store.list()) if env_store else 0,
            "active_id": env_store.active_id if env_store else None,
        }

    app.include_router(environments_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    configure_logging(default_settings.log_level)
    uvicorn.run(app, host=default_settings.api_host, port=default_settings.api_port)
