from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings
from .container import ApplicationContainer
from .logging import configure_logging
from ..application.services.account_service import AccountService, utc_now
from ..application.services.listing_query import ListingQueryService
from ..application.services.listing_service import ListingService
from ..domain.ports.media import ImageHost
from ..domain.ports.notifications import Notifier
from ..infrastructure.persistence.sqlite import SQLitePersistence
from ..presentation.api.routers import auth as auth_router
from ..presentation.api.routers import items as items_router
from ..presentation.api.routers import users as users_router
from ..services.email_service import EmailService
from ..services.image_host import CloudinaryImageHost

logger = logging.getLogger(__name__)


def create_application(
    settings: Optional[Settings] = None,
    *,
    notifier: Optional[Notifier] = None,
    image_host: Optional[ImageHost] = None,
    clock: Callable[[], datetime] = utc_now,
) -> FastAPI:
    settings = settings or Settings()

    app = FastAPI(
        title="Campus Market API",
        lifespan=_create_lifespan(settings, notifier, image_host, clock),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router.router)
    app.include_router(items_router.router)
    app.include_router(users_router.router)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        container: ApplicationContainer = app.state.container  # type: ignore[attr-defined]
        return {
            "ok": True,
            "email_delivery": getattr(container.notifier, "enabled", True),
            "image_hosting": settings.cloudinary_enabled or image_host is not None,
        }

    return app


def _create_lifespan(
    settings: Settings,
    notifier: Optional[Notifier],
    image_host: Optional[ImageHost],
    clock: Callable[[], datetime],
):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level)
        persistence = SQLitePersistence(settings.database_path)
        email = notifier or EmailService(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_username=settings.smtp_username,
            smtp_password=settings.smtp_password,
            from_email=settings.smtp_from_email,
            client_url=settings.client_url,
            otp_expiration_minutes=settings.otp_expiration_minutes,
        )
        host = image_host or _build_image_host(settings)

        account_service = AccountService(
            persistence,
            email,
            jwt_secret=settings.jwt_secret,
            jwt_algorithm=settings.jwt_algorithm,
            jwt_expiration_days=settings.jwt_expiration_days,
            otp_expiration_minutes=settings.otp_expiration_minutes,
            clock=clock,
        )
        listing_service = ListingService(
            persistence,
            host,
            placeholder_url=settings.placeholder_image_url,
            default_location=settings.default_location,
            clock=clock,
        )
        listing_query_service = ListingQueryService(persistence)

        app.state.container = ApplicationContainer(  # type: ignore[attr-defined]
            settings=settings,
            persistence=persistence,
            notifier=email,
            account_service=account_service,
            listing_service=listing_service,
            listing_query_service=listing_query_service,
        )
        logger.info("Campus Market API ready (database %s)", settings.database_path)

        try:
            yield
        finally:
            persistence.close()

    return lifespan


def _build_image_host(settings: Settings) -> Optional[ImageHost]:
    if not settings.cloudinary_enabled:
        logger.warning("Cloudinary is not configured; listings will use placeholder images.")
        return None
    return CloudinaryImageHost(
        cloud_name=settings.cloudinary_cloud_name or "",
        api_key=settings.cloudinary_api_key or "",
        api_secret=settings.cloudinary_api_secret or "",
        folder=settings.cloudinary_folder,
    )
