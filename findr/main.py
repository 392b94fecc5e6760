import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from findr.core.config import Settings, get_settings
from findr.core.logging import setup_logging
from findr.db.db import create_db_engine, init_db
from findr.routers import auth, reports
from findr.services.auth_service import AuthService
from findr.services.collaborators import BlobStore, ReportCollection
from findr.services.report_collection import SQLReportCollection
from findr.services.report_service import ReportService
from findr.utils.s3_service import S3BlobStore

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    collection: Optional[ReportCollection] = None,
    blob_store: Optional[BlobStore] = None,
    auth_service: Optional[AuthService] = None,
) -> FastAPI:
    """
    Wire the collaborators and routers into an application.

    Anything not passed in is built from settings: SQL tables for reports
    and accounts, and an S3 bucket for photos when R2_BUCKET is set.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    if collection is None or auth_service is None:
        engine = create_db_engine(settings.database_url)
        init_db(engine)

        collection = collection or SQLReportCollection(engine)
        auth_service = auth_service or AuthService(
            engine,
            settings.jwt_secret,
            settings.access_token_expire_minutes,
        )

    if blob_store is None and settings.r2_bucket:
        blob_store = S3BlobStore.from_settings(settings)

    if blob_store is None:
        logger.warning("No blob store configured, photo uploads are disabled")

    app = FastAPI(title="Findr")

    app.state.settings = settings
    app.state.auth_service = auth_service
    app.state.report_service = ReportService(
        collection,
        blob_store,
        resolve_policy=settings.resolve_policy,
        search_fields=settings.search_fields,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
    app.include_router(reports.router, prefix="/reports", tags=["Reports"])

    @app.get("/")
    def root():
        return {"status": "ok"}

    return app


app = create_app()
