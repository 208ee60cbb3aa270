"""
Error taxonomy for the order coordination engine.

Services raise these; the DRF exception handler at the bottom of this module
maps them onto HTTP responses so views never translate errors themselves.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class CoordinationError(Exception):
    """Base exception for engine errors."""

    http_status = status.HTTP_400_BAD_REQUEST
    code = "error"
    retryable = False

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self):
        payload = {"error": self.code, "detail": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(CoordinationError):
    """Raised for malformed input, before any state change."""

    code = "validation_error"


class NotFound(CoordinationError):
    """Raised when an entity id is unknown."""

    http_status = status.HTTP_404_NOT_FOUND
    code = "not_found"

    def __init__(self, entity_type, entity_id, message=None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        if message is None:
            message = f"{entity_type} '{entity_id}' not found"
        super().__init__(message, {"entity_type": entity_type, "entity_id": str(entity_id)})


class InvalidTransition(CoordinationError):
    """Raised when an operation is not legal from the current state."""

    http_status = status.HTTP_409_CONFLICT
    code = "invalid_transition"

    def __init__(self, message, current_status=None, target_status=None):
        details = {}
        if current_status is not None:
            details["current_status"] = current_status
        if target_status is not None:
            details["target_status"] = target_status
        super().__init__(message, details)
        self.current_status = current_status
        self.target_status = target_status


class Conflict(CoordinationError):
    """Raised when optimistic-concurrency retries are exhausted."""

    http_status = status.HTTP_409_CONFLICT
    code = "conflict"
    retryable = True


class AlreadySettled(CoordinationError):
    """Raised when an order is already bound to a live transaction or settled."""

    http_status = status.HTTP_409_CONFLICT
    code = "already_settled"

    def __init__(self, order_number, message=None):
        self.order_number = order_number
        if message is None:
            message = f"Order {order_number} is already attached to a settlement"
        super().__init__(message, {"order_number": order_number})


class AmountMismatch(CoordinationError):
    """Raised when the tendered amount does not match the computed total."""

    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "amount_mismatch"

    def __init__(self, expected, tendered, message=None):
        self.expected = expected
        self.tendered = tendered
        if message is None:
            message = f"Tendered {tendered} does not cover total {expected}"
        super().__init__(message, {"expected": str(expected), "tendered": str(tendered)})


class StoreUnavailable(CoordinationError):
    """Raised when the database times out or is locked. Safe to retry."""

    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "store_unavailable"
    retryable = True


class VersionConflict(Exception):
    """
    Compare-and-swap failure. Internal to the retry loop: callers outside the
    entity store only ever see Conflict once retries are exhausted.
    """

    def __init__(self, entity_type, entity_id, expected_version):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(
            f"{entity_type} '{entity_id}' changed since version {expected_version}"
        )


def coordination_exception_handler(exc, context):
    """
    Project-wide DRF exception handler. Engine errors become JSON responses
    with the status their class declares; everything else falls through to
    DRF's default handling.
    """
    if isinstance(exc, CoordinationError):
        request = context.get("request")
        log = logger.warning if exc.http_status >= 500 or exc.retryable else logger.info
        log(
            f"{exc.__class__.__name__} on "
            f"{request.method if request else '?'} {request.path if request else '?'}: {exc.message}"
        )
        response = Response(exc.to_dict(), status=exc.http_status)
        if exc.retryable:
            response["Retry-After"] = "1"
        return response

    return exception_handler(exc, context)
