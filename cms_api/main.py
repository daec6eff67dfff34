import logging

from fastapi import FastAPI

from cms_api.config import settings
from cms_api.core.handlers import register_exception_handlers


def configure_logging() -> None:
    """Set the package log level from settings."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("cms_api").setLevel(settings.LOG_LEVEL.upper())


def create_app() -> FastAPI:
    """
    Build the application shell.

    Item routers are mounted by the host under ``settings.API_PREFIX`` and
    attach ``batch_dependency`` to their collection endpoints.
    """
    configure_logging()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Batch request validation for a content-management REST API",
        version="1.0.0",
        debug=settings.DEBUG,
    )

    register_exception_handlers(app)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app
