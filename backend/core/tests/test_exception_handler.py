from unittest import mock

import pytest
from django.core.exceptions import ValidationError
from django.db import OperationalError
from django.db.models import ProtectedError
from rest_framework.exceptions import NotAuthenticated
from rest_framework.test import APIClient

from core import exception_handler as handler_module
from core.errors import InvalidTransitionError, TokenExpiredError
from core.exception_handler import GENERIC_FAILURE, freight_exception_handler

SHIPMENT = {"origin_country": "FR", "destination_country": "DE", "transport_modes": ["ROAD"], "weight_kg": "100"}


def test_domain_errors_keep_their_status():
    resp = freight_exception_handler(InvalidTransitionError("DRAFT", "accept"), {})
    assert resp.status_code == 400
    assert resp.data["current_status"] == "DRAFT"

    resp = freight_exception_handler(TokenExpiredError("tracking"), {})
    assert resp.status_code == 404


def test_drf_errors_are_left_to_drf():
    resp = freight_exception_handler(NotAuthenticated(), {})
    assert resp.status_code in (401, 403)


@pytest.mark.parametrize(
    "exc",
    [
        OperationalError("could not connect to server at 10.0.0.5"),
        ValidationError("Quote log entries are immutable."),
        ProtectedError("Prospects are kept for audit", set()),
        RuntimeError("secret internals"),
    ],
)
def test_anything_else_is_a_generic_retry(exc):
    with mock.patch.object(handler_module, "logger") as logger:
        resp = freight_exception_handler(exc, {"view": None})
    assert resp.status_code == 503
    assert resp.data == {"detail": GENERIC_FAILURE}
    logger.exception.assert_called_once()


@pytest.mark.django_db
def test_unexpected_failure_in_a_view_does_not_leak():
    with mock.patch("pricing.views.compute_estimate", side_effect=ValidationError("Quote log entries are immutable.")):
        resp = APIClient().post("/api/pricing/estimate/", SHIPMENT, format="json")
    assert resp.status_code == 503
    assert resp.json() == {"detail": GENERIC_FAILURE}
    assert b"immutable" not in resp.content
