"""mernapp API — FastAPI application entry point.

Invariants:
    - Nothing downstream of the ConnectionSupervisor runs before the datastore answers:
      models, tables and the Pipeline are created by the boot continuation only
    - The boot continuation runs exactly once per process
    - CORS wraps GZip wraps everything else: both apply to every response, including
      static files and classified errors
    - Cache, session store and classifier are per-process and live on app.state

Design Decisions:
    - Lifespan awaits the supervisor, so uvicorn binds the port only after boot
      completes (same effect as listening inside the connect callback)
    - create_app() factory: tests build isolated apps with their own Settings
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from mernapp.api.error_handlers import register_error_handlers
from mernapp.api.routes import health, interface_docs, pipeline
from mernapp.config import Settings, get_settings
from mernapp.core.cache import EphemeralCache
from mernapp.core.classifier import ErrorClassifier
from mernapp.core.interface_schema import load_interface_schema
from mernapp.infrastructure.connection_supervisor import ConnectionSupervisor
from mernapp.infrastructure.database import Datastore
from mernapp.infrastructure.observability import setup_logging
from mernapp.pipeline.assembly import Pipeline, build_pipeline
from mernapp.pipeline.gatekeepers import (
    reject_if_pending_record, reject_if_token_invalid,
)
from mernapp.pipeline.session_store import InMemorySessionStore

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


async def activate_pipeline(app: FastAPI, datastore: Datastore) -> Pipeline:
    """Boot continuation: everything that needs a live datastore."""
    settings: Settings = app.state.settings

    # Models register on Base.metadata at import time
    import mernapp.models  # noqa: F401
    from mernapp.handlers.items import build_registry, lookup_item_state

    if settings.auto_create_tables:
        await datastore.create_all()

    schema = load_interface_schema(settings.interface_schema_path)
    app.state.pipeline = build_pipeline(
        schema,
        build_registry(),
        app.state.classifier,
        resources={
            "cache": app.state.cache,
            "datastore": datastore,
            "settings": settings,
            "environment": settings.environment,
        },
        session_store=app.state.session_store,
        session_cookie_name=settings.session_cookie_name,
        secure_cookies=settings.environment == "production",
        static_dir=settings.static_dir,
        gatekeepers=[
            reject_if_token_invalid(settings.admin_token),
            reject_if_pending_record(lookup_item_state, resource="Item"),
        ],
    )

    Path(settings.temp_dir).mkdir(parents=True, exist_ok=True)
    logger.info(
        f"mernapp: server booted up successfully "
        f"({len(schema.entries)} operations, env={settings.environment})",
    )
    return app.state.pipeline


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings: Settings = app.state.settings
    setup_logging(settings.log_level, settings.log_format)

    datastore = Datastore(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    app.state.datastore = datastore

    async def boot() -> None:
        await activate_pipeline(app, datastore)

    app.state.supervisor = ConnectionSupervisor(
        datastore.connect, boot,
        retry_delay=settings.connect_retry_delay_seconds,
    )
    await app.state.supervisor.run()
    logger.info(f"mernapp is now running at port: {settings.port}")
    yield
    logger.info("mernapp shutting down")
    await datastore.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="mernapp API", version=VERSION, lifespan=lifespan)

    app.state.settings = settings
    app.state.classifier = ErrorClassifier()
    app.state.cache = EphemeralCache(default_ttl=settings.cache_default_ttl_seconds)
    app.state.session_store = InMemorySessionStore(
        ttl_seconds=settings.session_ttl_seconds,
    )
    app.state.pipeline = None

    # Added innermost first: CORS ends up outermost
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    # Explicit registration: the pipeline catch-all must stay last
    app.include_router(health.router)
    app.include_router(interface_docs.router)
    app.include_router(pipeline.router)
    return app


app = create_app()
