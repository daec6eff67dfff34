"""
CMS API Exception Classes

Every error carries a machine readable ``code`` that ends up in the
response body:
{
    "errors": [
        {
            "message": "...",
            "extensions": {"code": "...", ...}
        }
    ]
}
"""
from typing import Any, Dict, Optional


class CMSAPIException(Exception):
    """Base exception for CMS API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "INTERNAL_SERVER_ERROR",
        extensions: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code
        self.extensions = extensions or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Render as a single entry of the ``errors`` list."""
        return {
            "message": self.message,
            "extensions": {"code": self.code, **self.extensions},
        }


class InvalidPayloadError(CMSAPIException):
    """400 - Request body is missing or malformed."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=400,
            code="INVALID_PAYLOAD",
        )


class InvalidQueryError(CMSAPIException):
    """400 - A query parameter could not be understood."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=400,
            code="INVALID_QUERY",
        )


class FailedValidationError(CMSAPIException):
    """400 - Body is present but breaks a structural rule.

    ``field`` names the offending property and ``type`` the rule that was
    violated (``required``, ``xor``, ``array``, ...).
    """

    def __init__(
        self,
        field: str,
        type: str,
        message: Optional[str] = None,
        **extensions: Any,
    ):
        self.field = field
        self.type = type
        super().__init__(
            message=message or f'Validation failed for field "{field}". Rule "{type}" was not satisfied.',
            status_code=400,
            code="FAILED_VALIDATION",
            extensions={"field": field, "type": type, **extensions},
        )
