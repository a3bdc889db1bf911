import re
from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest import mock

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.utils import timezone

from core.errors import InvalidShipmentError, InvalidTransitionError, QuoteExpiredError
from pricing.dataclasses import PackageInput, ShipmentInput
from quotes.models import Quote, QuoteLog
from quotes.services.lifecycle import (
    create_quote,
    expire_if_due,
    expire_overdue_quotes,
    refresh_tracking_token,
    transition,
)

pytestmark = pytest.mark.django_db

REASON = "Customer found a cheaper carrier"


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def agent():
    return get_user_model().objects.create_user(username="agent", email="agent@example.com", password="pass", role="agent")


def _shipment(**kwargs):
    params = dict(
        origin_country="FR",
        destination_country="DE",
        transport_modes=["ROAD"],
        weight_kg=Decimal("100"),
    )
    params.update(kwargs)
    return ShipmentInput(**params)


def _mk_quote(now=None, **kwargs):
    return create_quote(_shipment(), contact_email="guest@example.com", now=now, **kwargs)


def _advance(quote, *actions, actor=None, now=None):
    for action in actions:
        quote = transition(quote.pk, action, actor=actor, now=now)
    return quote


PATHS = {
    Quote.DRAFT: (),
    Quote.SUBMITTED: ("submit",),
    Quote.SENT: ("submit", "send"),
    Quote.ACCEPTED: ("submit", "send", "accept"),
    Quote.IN_TREATMENT: ("submit", "send", "accept", "start_treatment"),
    Quote.VALIDATED: ("submit", "send", "accept", "start_treatment", "validate"),
    Quote.REJECTED: ("submit", "reject"),
    Quote.CANCELLED: ("cancel",),
}


def _drive_to(status, agent):
    if status == Quote.EXPIRED:
        old = timezone.now() - timedelta(days=31)
        quote = _advance(_mk_quote(now=old), "submit", "send", now=old)
        return transition(quote.pk, "expire")
    quote = _mk_quote()
    for action in PATHS[status]:
        quote = transition(quote.pk, action, actor=agent, payload={"reason": REASON})
    return quote


class TestCreateQuote:
    def test_initial_state(self):
        now = timezone.now()
        quote = _mk_quote(now=now)
        assert re.match(r"^QTE-\d{8}-\d{5}$", quote.quote_number)
        assert quote.status == Quote.DRAFT
        assert quote.estimated_cost == Decimal("50.00")
        assert quote.selected_mode == "ROAD"
        assert quote.valid_until == now + timedelta(days=30)
        assert quote.tracking_token
        assert quote.token_expires_at == now + timedelta(hours=72)
        assert quote.account is None and quote.is_attached_to_account is False

        log = quote.logs.get()
        assert log.event_type == QuoteLog.CREATED
        assert log.new_status == Quote.DRAFT
        assert log.metadata["source"] == "client"

    def test_numbers_increase_within_a_day_and_restart_next_day(self):
        day1 = timezone.now().replace(hour=10)
        first = _mk_quote(now=day1)
        second = _mk_quote(now=day1 + timedelta(minutes=5))
        third = _mk_quote(now=day1 + timedelta(days=1))
        assert first.quote_number.endswith("-00001")
        assert second.quote_number.endswith("-00002")
        assert third.quote_number.endswith("-00001")
        assert first.quote_number != third.quote_number

    def test_packages_are_stored(self):
        shipment = _shipment(
            weight_kg=None,
            packages=[
                PackageInput(weight_kg=Decimal("100"), quantity=2),
                PackageInput(weight_kg=Decimal("50"), quantity=3, description="boxes"),
            ],
        )
        quote = create_quote(shipment, contact_email="guest@example.com")
        assert quote.packages.count() == 2
        assert quote.weight_kg == Decimal("350")

    def test_invalid_shipment_writes_nothing(self):
        with pytest.raises(InvalidShipmentError):
            create_quote(_shipment(weight_kg=Decimal("0")))
        assert Quote.objects.count() == 0

    def test_account_contact_snapshot(self, agent):
        client = get_user_model().objects.create_user(
            username="c1", email="Client@Example.com", password="pass", phone="+33 6 00"
        )
        quote = create_quote(_shipment(), account=client)
        assert quote.is_attached_to_account is True
        assert quote.contact_email == "client@example.com"
        assert quote.contact_phone == "+33 6 00"


class TestTransitions:
    def test_happy_path(self, agent):
        quote = _mk_quote()
        quote = _advance(quote, "submit", "send", "accept")
        quote = _advance(quote, "start_treatment", "validate", actor=agent)

        assert quote.status == Quote.VALIDATED
        assert quote.treatment_agent == agent
        for field in ("submitted_at", "sent_at", "accepted_at", "treatment_started_at", "validated_at"):
            assert getattr(quote, field) is not None
        events = list(quote.logs.values_list("event_type", flat=True))
        assert events == [
            QuoteLog.CREATED,
            QuoteLog.STATUS_CHANGED,
            QuoteLog.SENT_TO_CLIENT,
            QuoteLog.ACCEPTED_BY_CLIENT,
            QuoteLog.TREATMENT_STARTED,
            QuoteLog.TREATMENT_VALIDATED,
        ]
        last = quote.logs.last()
        assert (last.old_status, last.new_status, last.actor) == (Quote.IN_TREATMENT, Quote.VALIDATED, "agent")

    @pytest.mark.parametrize("status", [Quote.DRAFT, Quote.SUBMITTED, Quote.ACCEPTED, Quote.IN_TREATMENT])
    def test_accept_only_from_sent(self, status, agent):
        quote = _drive_to(status, agent)
        logged = quote.logs.count()
        with pytest.raises(InvalidTransitionError) as exc:
            transition(quote.pk, "accept", actor=agent)
        assert exc.value.current_status == status
        assert exc.value.action == "accept"
        quote.refresh_from_db()
        assert quote.status == status
        assert quote.logs.count() == logged

    def test_unknown_action(self):
        quote = _mk_quote()
        with pytest.raises(InvalidTransitionError):
            transition(quote.pk, "teleport")

    @pytest.mark.parametrize("status", [Quote.VALIDATED, Quote.REJECTED, Quote.CANCELLED, Quote.EXPIRED])
    def test_terminal_states_absorb(self, status, agent):
        quote = _drive_to(status, agent)
        logged = quote.logs.count()
        for action in ("submit", "send", "accept", "start_treatment", "validate", "reject", "cancel", "expire"):
            with pytest.raises(InvalidTransitionError):
                transition(quote.pk, action, actor=agent, payload={"reason": REASON})
        quote.refresh_from_db()
        assert quote.status == status
        assert quote.logs.count() == logged

    def test_reason_required_for_reject_and_cancel(self):
        quote = _mk_quote()
        with pytest.raises(InvalidTransitionError):
            transition(quote.pk, "cancel", payload={"reason": "too short"})
        with pytest.raises(InvalidTransitionError):
            transition(quote.pk, "reject")
        quote = transition(quote.pk, "reject", payload={"reason": REASON, "competitor": "ACME"})
        assert quote.status == Quote.REJECTED
        assert quote.rejection_reason == REASON
        log = quote.logs.last()
        assert log.notes == REASON
        assert log.metadata["competitor"] == "ACME"

    def test_operator_required_for_treatment(self, agent):
        quote = _advance(_mk_quote(), "submit", "send", "accept")
        with pytest.raises(InvalidTransitionError):
            transition(quote.pk, "start_treatment")
        quote = transition(quote.pk, "start_treatment", actor=agent)
        assert quote.status == Quote.IN_TREATMENT

    def test_volume_only_quote_can_be_submitted(self):
        shipment = _shipment(
            weight_kg=None,
            length_cm=Decimal("100"),
            width_cm=Decimal("100"),
            height_cm=Decimal("100"),
        )
        quote = create_quote(shipment, contact_email="guest@example.com")
        assert quote.weight_kg is None
        assert quote.chargeable_weight_kg is None
        assert quote.estimated_cost == Decimal("150.00")

        quote = _advance(quote, "submit", "send")
        assert quote.status == Quote.SENT

    def test_submit_requires_weight_or_volume(self):
        quote = _mk_quote()
        Quote.objects.filter(pk=quote.pk).update(weight_kg=None)
        with pytest.raises(InvalidTransitionError) as exc:
            transition(quote.pk, "submit")
        assert "weight_kg" in str(exc.value)

    def test_send_requires_estimated_cost(self):
        quote = _advance(_mk_quote(), "submit")
        Quote.objects.filter(pk=quote.pk).update(estimated_cost=None)
        with pytest.raises(InvalidTransitionError):
            transition(quote.pk, "send")


class TestExpiry:
    def test_accept_after_validity_expires_the_quote(self):
        created = timezone.now() - timedelta(days=40)
        quote = _advance(_mk_quote(now=created), "submit", "send", now=created)
        with pytest.raises(QuoteExpiredError) as exc:
            transition(quote.pk, "accept")
        assert exc.value.current_status == Quote.EXPIRED
        quote.refresh_from_db()
        assert quote.status == Quote.EXPIRED
        assert quote.expired_at is not None
        assert quote.logs.last().event_type == QuoteLog.EXPIRED

    def test_accept_within_validity(self):
        quote = _advance(_mk_quote(), "submit", "send", "accept")
        assert quote.status == Quote.ACCEPTED

    def test_expire_not_allowed_before_valid_until(self):
        quote = _advance(_mk_quote(), "submit", "send")
        with pytest.raises(InvalidTransitionError):
            transition(quote.pk, "expire")

    def test_lazy_expiry_on_read(self):
        created = timezone.now() - timedelta(days=31)
        quote = _advance(_mk_quote(now=created), "submit", "send", now=created)
        fresh = _advance(_mk_quote(), "submit", "send")

        assert expire_if_due(quote).status == Quote.EXPIRED
        assert expire_if_due(fresh).status == Quote.SENT

    def test_draft_never_expires(self):
        quote = _mk_quote(now=timezone.now() - timedelta(days=90))
        assert expire_if_due(quote).status == Quote.DRAFT

    def test_sweep(self, agent):
        old = timezone.now() - timedelta(days=45)
        sent = _advance(_mk_quote(now=old), "submit", "send", now=old)
        accepted = _advance(_mk_quote(now=old), "submit", "send", "accept", now=old)
        draft = _mk_quote(now=old)
        current = _advance(_mk_quote(), "submit", "send")

        assert expire_overdue_quotes() == 2
        assert expire_overdue_quotes() == 0
        statuses = dict(Quote.objects.values_list("pk", "status"))
        assert statuses[sent.pk] == Quote.EXPIRED
        assert statuses[accepted.pk] == Quote.EXPIRED
        assert statuses[draft.pk] == Quote.DRAFT
        assert statuses[current.pk] == Quote.SENT


class TestEvents:
    def test_send_emits_after_commit(self, django_capture_on_commit_callbacks):
        quote = _advance(_mk_quote(), "submit")
        notifier = mock.Mock()
        with mock.patch("core.events.get_notifier", return_value=notifier):
            with django_capture_on_commit_callbacks(execute=True):
                transition(quote.pk, "send")
        names = [c.args[0] for c in notifier.emit.call_args_list]
        assert names == ["quote/sent"]
        payload = notifier.emit.call_args.args[1]
        assert payload["status"] == Quote.SENT
        assert payload["tracking_token"] == quote.tracking_token

    def test_notifier_failure_keeps_transition(self, django_capture_on_commit_callbacks):
        quote = _advance(_mk_quote(), "submit")
        notifier = mock.Mock()
        notifier.emit.side_effect = RuntimeError("mail relay down")
        with mock.patch("core.events.get_notifier", return_value=notifier), \
                mock.patch("core.events.alerts") as alerts:
            with django_capture_on_commit_callbacks(execute=True):
                transition(quote.pk, "send")
        quote.refresh_from_db()
        assert quote.status == Quote.SENT
        alerts.exception.assert_called_once()


class TestQuoteLog:
    def test_entries_are_immutable(self):
        log = _mk_quote().logs.get()
        log.notes = "rewritten"
        with pytest.raises(ValidationError):
            log.save()
        with pytest.raises(ValidationError):
            log.delete()
        with pytest.raises(ValidationError):
            QuoteLog.objects.filter(pk=log.pk).update(notes="rewritten")
        with pytest.raises(ValidationError):
            QuoteLog.objects.all().delete()
        log.refresh_from_db()
        assert log.notes is None


def test_refresh_tracking_token(agent):
    quote = _mk_quote()
    old_token = quote.tracking_token
    later = timezone.now() + timedelta(hours=80)
    quote = refresh_tracking_token(quote.pk, actor=agent, now=later)
    assert quote.tracking_token != old_token
    assert quote.token_expires_at == later + timedelta(hours=72)
    assert quote.logs.last().event_type == QuoteLog.TOKEN_REFRESHED


def test_expire_quotes_command():
    old = timezone.now() - timedelta(days=45)
    _advance(_mk_quote(now=old), "submit", "send", now=old)
    out = StringIO()
    call_command("expire_quotes", stdout=out)
    assert "Expired 1 quote(s)." in out.getvalue()
    assert Quote.objects.get().status == Quote.EXPIRED
