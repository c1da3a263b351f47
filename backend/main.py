"""Hashdrop: main application entry point."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.util import CommandError
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api.download.controllers.download_controller import router as download_router
from api.files.controllers.files_controller import router as files_router
from api.upload.controllers.upload_controller import router as upload_router
from cleanup import CleanupScheduler
from config import LOG_LEVEL
from context import StoreContext
from database import init_db
from errors import HashdropError

logger = logging.getLogger(__name__)

BACKEND_DIR = Path(__file__).parent


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def run_migrations(ctx: StoreContext) -> None:
    """Run Alembic migrations on startup."""
    try:
        alembic_cfg = Config(str(BACKEND_DIR / "alembic.ini"))
        alembic_cfg.set_main_option("script_location", str(BACKEND_DIR / "db_migrations"))
        with ctx.engine.begin() as connection:
            alembic_cfg.attributes["connection"] = connection
            command.upgrade(alembic_cfg, "head")
    except (CommandError, SQLAlchemyError):
        logger.exception("Migration failed, creating tables directly")
        init_db(ctx.engine)


def create_app(context: StoreContext | None = None) -> FastAPI:
    ctx = context or StoreContext()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        run_migrations(ctx)
        ctx.blobs.ensure_bucket()

        scheduler = None
        if ctx.settings.cleanup_enabled:
            scheduler = CleanupScheduler(
                ctx,
                hour=ctx.settings.cleanup_hour,
                grace=ctx.settings.cleanup_grace,
                audit=ctx.settings.cleanup_audit,
            )
            scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.stop()

    app = FastAPI(title="Hashdrop", version="0.1.0", lifespan=lifespan)
    app.state.context = ctx

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HashdropError)
    async def hashdrop_error_handler(request: Request, exc: HashdropError):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    app.include_router(files_router)
    app.include_router(download_router)
    app.include_router(upload_router)
    return app


configure_logging()
app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
