import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from cms_api.core.exceptions import CMSAPIException

logger = logging.getLogger(__name__)


async def cms_exception_handler(request: Request, exc: CMSAPIException):
    """Handle typed CMS API exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"errors": [exc.to_dict()]},
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle FastAPI/Pydantic request validation errors."""
    errors = []
    for error in exc.errors():
        loc = error.get("loc", [])
        field = ".".join(str(l) for l in loc if l != "body")
        errors.append(
            {
                "message": f"{field}: {error.get('msg', 'Validation error')}" if field else error.get("msg", "Validation error"),
                "extensions": {
                    "code": "FAILED_VALIDATION",
                    "field": field or None,
                    "type": error.get("type"),
                },
            }
        )

    return JSONResponse(status_code=400, content={"errors": errors})


async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "errors": [
                {
                    "message": "An unexpected error occurred.",
                    "extensions": {"code": "INTERNAL_SERVER_ERROR"},
                }
            ]
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the error handlers rendering the ``{"errors": [...]}`` body."""
    app.add_exception_handler(CMSAPIException, cms_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
