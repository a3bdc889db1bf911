from __future__ import annotations

import logging

from django.db import DatabaseError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from .errors import (
    FreightError,
    InvalidShipmentError,
    InvalidTransitionError,
    ReconciliationConflictError,
    TokenError,
)

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "The service is temporarily unavailable. Please try again."


def error_payload(exc: FreightError):
    """Map a domain error to (body, http status). Consistent shape: {'detail': ...}."""
    if isinstance(exc, InvalidShipmentError):
        return {"detail": str(exc), "errors": exc.field_errors}, status.HTTP_400_BAD_REQUEST
    if isinstance(exc, InvalidTransitionError):
        return (
            {"detail": str(exc), "current_status": exc.current_status, "action": exc.action},
            status.HTTP_400_BAD_REQUEST,
        )
    if isinstance(exc, TokenError):
        return {"detail": exc.public_message}, status.HTTP_404_NOT_FOUND
    if isinstance(exc, ReconciliationConflictError):
        return {"detail": str(exc)}, status.HTTP_409_CONFLICT
    return {"detail": str(exc)}, status.HTTP_400_BAD_REQUEST


def freight_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, FreightError):
        body, code = error_payload(exc)
        return Response(body, status=code)

    view = context.get("view")
    view_name = view.__class__.__name__ if view else "unknown view"
    if isinstance(exc, DatabaseError):
        logger.exception("Storage failure in %s", view_name)
    else:
        logger.exception("Unhandled %s in %s", exc.__class__.__name__, view_name)
    # Internals stay in the log; callers only learn to retry
    return Response({"detail": GENERIC_FAILURE}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
