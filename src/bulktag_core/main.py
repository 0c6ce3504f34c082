"""ASGI entry point: `uvicorn bulktag_core.main:app`."""
import logging

from fastapi import FastAPI

from . import __version__, config
from .api.routes import router as bulk_router


def configure_logging() -> None:
    """Root logging for the API process; level from BULKTAG_LOG_LEVEL."""
    logging.basicConfig(
        level=config.log_level(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title="bulktag API",
        version=__version__,
        description="Round-trip endpoints for bulk Shopify tag and metafield runs",
    )
    app.include_router(bulk_router)

    @app.get("/health", include_in_schema=False)
    async def health() -> dict:
        return {"status": "ok", "version": __version__}

    return app


app = create_app()
