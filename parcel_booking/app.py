# ============================================================
# app.py — Entry point of the Parcel Booking service
# ------------------------------------------------------------
# Builds the FastAPI application:
#   - reads Settings once and configures logging
#   - creates the DB engine and the two DMS clients, kept on
#     app.state for the request dependencies
#   - creates the tables at startup
#   - maps lifecycle errors onto the response envelope
#
# Run: uvicorn --factory parcel_booking.app:create_app
# ============================================================
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from parcel_booking import models  # noqa: F401  (registers the tables)
from parcel_booking.api import envelope, router
from parcel_booking.barcode import BarcodeIssuer
from parcel_booking.dms import DmsClient
from parcel_booking.errors import ExternalServiceError, ParcelBookingError, ValidationError
from parcel_booking.logs import configure_logging
from parcel_booking.settings import Settings

logger = structlog.get_logger()


def make_engine(database_url: str):
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


def create_app(
    settings: Optional[Settings] = None,
    barcode_issuer: Optional[BarcodeIssuer] = None,
    dms_client: Optional[DmsClient] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(title="Parcel Booking Service")
    app.state.settings = settings
    app.state.engine = make_engine(settings.database_url)
    app.state.barcode_issuer = barcode_issuer or BarcodeIssuer(
        settings.dms_base_url, timeout=settings.dms_timeout_seconds
    )
    app.state.dms_client = dms_client or DmsClient(settings.dms_base_url, timeout=settings.dms_timeout_seconds)

    @app.on_event("startup")
    def start():
        SQLModel.metadata.create_all(app.state.engine)
        logger.info("parcel booking service started", barcode_policy=settings.barcode_policy)

    @app.on_event("shutdown")
    def stop():
        app.state.barcode_issuer.close()
        app.state.dms_client.close()

    @app.exception_handler(ParcelBookingError)
    def lifecycle_error(request: Request, exc: ParcelBookingError):
        upstream = None
        if isinstance(exc, ExternalServiceError) and exc.upstream_status is not None:
            upstream = {"status": exc.upstream_status, "body": exc.upstream_body}
        return envelope(exc.status_code, exc.message, None, upstream)

    @app.exception_handler(RequestValidationError)
    def invalid_request(request: Request, exc: RequestValidationError):
        logger.info("invalid request", path=request.url.path, errors=len(exc.errors()))
        return envelope(ValidationError.status_code, ValidationError.default_message)

    @app.exception_handler(Exception)
    def unhandled(request: Request, exc: Exception):
        logger.exception("unhandled exception", path=request.url.path, error=str(exc))
        return envelope(500, ParcelBookingError.default_message)

    app.include_router(router)
    return app
