"""Litestar app configuration and lifecycle management."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from litestar import Litestar
from litestar.config.cors import CORSConfig
from litestar.datastructures import CacheControlHeader
from litestar.middleware import DefineMiddleware
from litestar.static_files import (
    create_static_files_router,  # pyright: ignore[reportUnknownVariableType]
)

from ..auth import JWTAuthenticationMiddleware
from ..config import Config, get_config
from ..db.config import get_engine
from ..storage import StorageBackend, get_storage
from .auth_routes import auth_login, auth_logout, auth_status
from .dataset_routes import (
    bulk_assign,
    bulk_delete,
    download_zip,
    export_csv_endpoint,
    export_json_endpoint,
    import_csv_endpoint,
)
from .file_routes import (
    delete_file_endpoint,
    get_file_endpoint,
    get_signed_url_endpoint,
    list_files_endpoint,
    update_file_endpoint,
    upload_file,
)
from .state import AppState
from .stats_routes import get_statistics
from .version_routes import list_versions_endpoint, restore_version_endpoint, upload_version_endpoint
from .waveform_routes import get_waveform, get_waveform_image, seek_endpoint

logger = logging.getLogger(__name__)


@asynccontextmanager
async def database_lifespan(_app: Litestar) -> AsyncGenerator[None, None]:
    """Manage database engine lifecycle.

    Initializes the database engine on startup and disposes it on shutdown.
    """
    engine = get_engine()
    logger.info("Database engine initialized")

    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Database engine disposed")


def create_app(config: Config | None = None, storage: StorageBackend | None = None) -> Litestar:
    """Build the Litestar application.

    Args:
        config: Configuration (defaults to the cached global config)
        storage: Blob storage (defaults to the backend chosen by EMOSET_STORAGE)
    """
    config = config or get_config()
    storage = storage or get_storage(config)

    Path(config.media_root).mkdir(parents=True, exist_ok=True)
    media_router = create_static_files_router(
        path="/media",
        directories=[config.media_root],
        cache_control=CacheControlHeader(max_age=86400, public=True, must_revalidate=True),
    )

    static_handlers = [media_router]
    frontend_dist = Path("frontend/dist")
    if frontend_dist.exists():
        static_handlers.append(
            create_static_files_router(path="/", directories=[str(frontend_dist)], html_mode=True)
        )

    # Allow CORS from development origins and production frontend
    allowed_origins = ["http://localhost:5173", "http://localhost:3000"]
    frontend_url = os.getenv("FRONTEND_URL", "http://localhost:5173")
    if frontend_url not in ["/", ""] and frontend_url not in allowed_origins:
        allowed_origins.append(frontend_url)

    cors_config = CORSConfig(
        allow_origins=allowed_origins,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    app_state = AppState({"config": config, "storage": storage, "frontend_url": frontend_url})

    auth_middleware = DefineMiddleware(
        JWTAuthenticationMiddleware,
        exclude=["/auth", "/schema", "/media"],
    )

    return Litestar(
        route_handlers=[
            auth_status,
            auth_login,
            auth_logout,
            list_files_endpoint,
            get_file_endpoint,
            upload_file,
            update_file_endpoint,
            delete_file_endpoint,
            get_signed_url_endpoint,
            list_versions_endpoint,
            upload_version_endpoint,
            restore_version_endpoint,
            bulk_delete,
            bulk_assign,
            export_csv_endpoint,
            export_json_endpoint,
            import_csv_endpoint,
            download_zip,
            get_waveform,
            get_waveform_image,
            seek_endpoint,
            get_statistics,
            *static_handlers,
        ],
        middleware=[auth_middleware],
        cors_config=cors_config,
        state=app_state,
        request_max_body_size=1024 * 1024 * config.dataset.max_upload_mb,
        lifespan=[database_lifespan],
        debug=os.getenv("EMOSET_DEBUG", "false").lower() in ("true", "1", "yes"),
    )
