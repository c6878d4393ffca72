# services/api/lens_api/main.py

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .catalog import ImageCatalog
from .config import Settings
from .db import Base, make_engine, make_session_factory
from .errors import ImageAccessError, image_access_error_handler
from .gateway import ImageAccessGateway
from .image_pipeline import ImageTransformPipeline
from .logging_mw import RequestLoggingMiddleware, configure_logging
from .origin import OriginGuard
from .rate_limit import RateLimiter
from .routes_images import router as images_router
from .storage import Storage, build_storage
from .tokens import TokenService
from . import schemas

LOG = logging.getLogger("lens")

def _check_secret(settings: Settings) -> None:
    if not settings.uses_dev_secret():
        return
    if settings.ENVIRONMENT == "production":
        raise RuntimeError("IMAGE_SECRET_KEY must be set in production")
    LOG.warning("IMAGE_SECRET_KEY not set; using the development signing key")

def create_app(
    settings: Optional[Settings] = None,
    *,
    storage: Optional[Storage] = None,
    rate_limiter: Optional[RateLimiter] = None,
    token_service: Optional[TokenService] = None,
) -> FastAPI:
    """
    Builds the API with one Settings instance handed to every service.
    storage / rate_limiter / token_service may be injected (tests, alternate backends).
    """
    configure_logging()
    settings = settings or Settings()
    _check_secret(settings)

    engine = make_engine(settings)
    catalog = ImageCatalog(make_session_factory(engine))
    gateway = ImageAccessGateway(
        tokens=token_service or TokenService(settings),
        origin_guard=OriginGuard.from_settings(settings),
        catalog=catalog,
        storage=storage or build_storage(settings),
        pipeline=ImageTransformPipeline(settings),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.DB_CREATE_ALL:
            Base.metadata.create_all(engine)
        yield
        await gateway.drain(timeout=settings.VIEW_COUNTER_DRAIN_TIMEOUT_SEC)
        engine.dispose()

    app = FastAPI(title="Sankhanil Lens API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.catalog = catalog
    app.state.gateway = gateway
    app.state.rate_limiter = rate_limiter or RateLimiter(settings)

    app.add_middleware(RequestLoggingMiddleware)
    # Browser clients fetch tokens cross-origin; credentials need explicit origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ImageAccessError, image_access_error_handler)

    app.include_router(images_router)

    @app.get("/api/health", response_model=schemas.HealthResponse)
    def health():
        return schemas.HealthResponse()

    return app
