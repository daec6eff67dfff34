"""
Batch request validation.

Bulk read (``SEARCH``), update (``PATCH``) and delete (``DELETE``) requests
on collection endpoints either send a list of items/keys, or an object with
exactly one of ``keys`` / ``query`` (plus ``data`` on update). The validator
normalizes the body into that shape and reports problems as values; the
FastAPI dependency at the bottom turns them into exceptions.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from fastapi import Request
from pydantic import ValidationError as PydanticValidationError

from cms_api.config import settings
from cms_api.core.exceptions import (
    CMSAPIException,
    FailedValidationError,
    InvalidPayloadError,
    InvalidQueryError,
)
from cms_api.schemas.batch import BatchPayload, BatchRequest
from cms_api.utils.sanitize_query import sanitize_query

logger = logging.getLogger(__name__)

BATCH_KINDS = ("read", "update", "delete")


@dataclass(frozen=True)
class Proceed:
    """Request may continue down the pipeline."""
    sanitized_query: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class Reject:
    """Request is rejected with ``error``."""
    error: CMSAPIException


ValidationOutcome = Union[Proceed, Reject]


# pydantic error types mapped to the rule names reported to clients
RULE_NAMES = {"list_type": "array", "dict_type": "object"}

SELECTOR_RULES = {"keys": "array", "query": "object"}


def _parse_payload(body: Dict[str, Any]) -> Union[BatchPayload, CMSAPIException]:
    """Type-check ``keys`` / ``query``; an explicit null counts as malformed."""
    for field, rule in SELECTOR_RULES.items():
        if field in body and body[field] is None:
            return FailedValidationError(field=field, type=rule, message=f'"{field}" must be an {rule}')

    try:
        return BatchPayload.model_validate(body)
    except PydanticValidationError as exc:
        error = exc.errors()[0]
        field = str(error["loc"][0]) if error["loc"] else "body"
        rule = RULE_NAMES.get(error["type"], error["type"])
        return FailedValidationError(field=field, type=rule, message=f'"{field}": {error["msg"]}')


def _check_payload(kind: str, body: Dict[str, Any]) -> Optional[CMSAPIException]:
    payload = _parse_payload(body)
    if isinstance(payload, CMSAPIException):
        return payload

    present = {name for name in SELECTOR_RULES if getattr(payload, name) is not None}

    if kind == "update" and "data" not in payload.model_fields_set:
        return FailedValidationError(field="data", type="required", message='"data" is required')

    if len(present) != 1:
        return FailedValidationError(
            field="keys",
            type="xor",
            message='Exactly one of "keys" or "query" is required',
            peers=["keys", "query"],
        )

    return None


def validate_batch(kind: str) -> Callable[[BatchRequest], ValidationOutcome]:
    """
    Build the batch validator for one operation kind.

    Args:
        kind: One of "read", "update" or "delete"

    Returns:
        Function validating a BatchRequest in place
    """
    if kind not in BATCH_KINDS:
        raise ValueError(f"Unknown batch kind {kind!r}, expected one of {', '.join(BATCH_KINDS)}")

    retrieval_methods = {method.upper() for method in settings.RETRIEVAL_METHODS}
    search_method = settings.BATCH_SEARCH_METHOD.upper()

    def validate(request: BatchRequest) -> ValidationOutcome:
        method = request.method.upper()

        if method in retrieval_methods:
            request.body = {}
            return Proceed()

        if request.singleton and method != search_method:
            request.body = {}
            return Proceed()

        body = request.body

        if body is None or (method == search_method and body == {}):
            return Reject(InvalidPayloadError("Payload in body is required"))

        if kind in ("update", "delete") and isinstance(body, list):
            return Proceed()

        if not isinstance(body, dict):
            return Reject(InvalidPayloadError("Payload in body must be an object"))

        if kind == "read":
            payload = _parse_payload(body)
            if isinstance(payload, CMSAPIException):
                logger.debug("Rejected batch %s: %s", kind, payload.message)
                return Reject(payload)
            if payload.query is None:
                return Proceed()
            try:
                request.sanitized_query = sanitize_query(payload.query, request.accountability)
            except InvalidQueryError as exc:
                return Reject(exc)
            return Proceed(request.sanitized_query)

        error = _check_payload(kind, body)
        if error is not None:
            logger.debug("Rejected batch %s: %s", kind, error.message)
            return Reject(error)

        return Proceed()

    return validate


def run_with_continuation(
    validator: Callable[[BatchRequest], ValidationOutcome],
    request: BatchRequest,
    next_: Callable[..., Any],
) -> Any:
    """Run ``validator`` and report the outcome through an error-first callback."""
    outcome = validator(request)
    if isinstance(outcome, Reject):
        return next_(outcome.error)
    return next_()


def batch_dependency(kind: str) -> Callable:
    """
    FastAPI dependency validating the batch body of the current request.

    The singleton flag and accountability are read from ``request.state``
    (set by earlier dependencies or middleware). The normalized body and
    query are written back to ``request.state`` as ``body`` and
    ``sanitized_query``.
    """
    validator = validate_batch(kind)

    async def dependency(request: Request) -> BatchRequest:
        raw = await request.body()
        body = None
        if raw:
            try:
                body = json.loads(raw)
            except (json.JSONDecodeError, UnicodeDecodeError):
                raise InvalidPayloadError("Payload in body must be valid JSON")

        batch_request = BatchRequest(
            method=request.method,
            body=body,
            singleton=getattr(request.state, "singleton", False),
            accountability=getattr(request.state, "accountability", None),
        )

        outcome = validator(batch_request)
        if isinstance(outcome, Reject):
            raise outcome.error

        request.state.body = batch_request.body
        request.state.sanitized_query = batch_request.sanitized_query
        return batch_request

    return dependency
