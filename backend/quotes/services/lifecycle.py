"""
Quote state machine.

DRAFT -> SUBMITTED -> SENT -> ACCEPTED -> IN_TREATMENT -> VALIDATED, with
REJECTED / CANCELLED reachable from any non-terminal status and EXPIRED from
SENT or ACCEPTED once the validity window has passed.

Every transition locks the quote row, updates the status and appends the
QuoteLog entry in one transaction. Notifications go out after commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, FrozenSet, Iterable, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from core.errors import InvalidTransitionError, QuoteExpiredError
from core.events import emit_on_commit
from core.tokens import TRACKING, token_service
from pricing.dataclasses import ShipmentInput
from pricing.services.config_provider import get_config_provider
from pricing.services.pricing_engine import compute_estimate
from ..models import Package, Quote, QuoteLog
from .numbering import next_quote_number

logger = logging.getLogger(__name__)

MIN_REASON_LENGTH = 10
SYSTEM_ACTOR = "system"

NON_TERMINAL: FrozenSet[str] = frozenset(
    s for s, _ in Quote.STATUS_CHOICES if s not in Quote.TERMINAL_STATUSES
)


@dataclass(frozen=True)
class Transition:
    action: str
    sources: FrozenSet[str]
    target: str
    log_event: str
    timestamp_field: str
    event_name: str
    needs_reason: bool = False
    needs_operator: bool = False


TRANSITIONS: Dict[str, Transition] = {
    t.action: t
    for t in (
        Transition("submit", frozenset({Quote.DRAFT}), Quote.SUBMITTED,
                   QuoteLog.STATUS_CHANGED, "submitted_at", "quote/submitted"),
        Transition("send", frozenset({Quote.SUBMITTED}), Quote.SENT,
                   QuoteLog.SENT_TO_CLIENT, "sent_at", "quote/sent"),
        Transition("accept", frozenset({Quote.SENT}), Quote.ACCEPTED,
                   QuoteLog.ACCEPTED_BY_CLIENT, "accepted_at", "quote/accepted"),
        Transition("start_treatment", frozenset({Quote.ACCEPTED}), Quote.IN_TREATMENT,
                   QuoteLog.TREATMENT_STARTED, "treatment_started_at", "quote/treatment-started",
                   needs_operator=True),
        Transition("validate", frozenset({Quote.IN_TREATMENT}), Quote.VALIDATED,
                   QuoteLog.TREATMENT_VALIDATED, "validated_at", "quote/validated",
                   needs_operator=True),
        Transition("reject", NON_TERMINAL, Quote.REJECTED,
                   QuoteLog.REJECTED_BY_CLIENT, "rejected_at", "quote/rejected", needs_reason=True),
        Transition("cancel", NON_TERMINAL, Quote.CANCELLED,
                   QuoteLog.CANCELLED, "cancelled_at", "quote/cancelled", needs_reason=True),
        Transition("expire", frozenset({Quote.SENT, Quote.ACCEPTED}), Quote.EXPIRED,
                   QuoteLog.EXPIRED, "expired_at", "quote/expired"),
    )
}

ACTIONS = tuple(TRANSITIONS)


def actor_label(actor) -> str:
    if actor is None or not getattr(actor, "is_authenticated", False):
        return SYSTEM_ACTOR
    return actor.get_username()


def _user_or_none(actor):
    if actor is None or not getattr(actor, "is_authenticated", False):
        return None
    return actor


def missing_shipment_fields(quote: Quote) -> list:
    missing = []
    if not quote.origin_country:
        missing.append("origin_country")
    if not quote.destination_country:
        missing.append("destination_country")
    if not quote.transport_modes:
        missing.append("transport_modes")
    has_volume = all(
        v is not None and v > 0 for v in (quote.length_cm, quote.width_cm, quote.height_cm)
    )
    # Volume-only shipments are billed per m3 and need no weight
    if quote.weight_kg is None and not has_volume and not quote.packages.exists():
        missing.append("weight_kg")
    return missing


def _check_guard(quote: Quote, t: Transition, actor, payload: Dict[str, Any], now: datetime) -> None:
    if quote.status not in t.sources:
        raise InvalidTransitionError(quote.status, t.action)

    if t.action == "submit":
        missing = missing_shipment_fields(quote)
        if missing:
            raise InvalidTransitionError(quote.status, t.action, f"missing {', '.join(missing)}")
    elif t.action == "send" and quote.estimated_cost is None:
        raise InvalidTransitionError(quote.status, t.action, "no estimated cost computed")
    elif t.action == "expire" and not now > quote.valid_until:
        raise InvalidTransitionError(quote.status, t.action, "quote is still within its validity window")

    if t.needs_operator and _user_or_none(actor) is None:
        raise InvalidTransitionError(quote.status, t.action, "an operator must be identified")
    if t.needs_reason:
        reason = (payload.get("reason") or "").strip()
        if len(reason) < MIN_REASON_LENGTH:
            raise InvalidTransitionError(
                quote.status, t.action, f"a reason of at least {MIN_REASON_LENGTH} characters is required"
            )


def _apply(quote: Quote, t: Transition, actor, payload: Dict[str, Any], now: datetime) -> QuoteLog:
    old_status = quote.status
    quote.status = t.target
    setattr(quote, t.timestamp_field, now)
    update_fields = ["status", t.timestamp_field, "updated_at"]

    reason = (payload.get("reason") or "").strip() or None
    if t.action == "reject":
        quote.rejection_reason = reason
        update_fields.append("rejection_reason")
    elif t.action == "cancel":
        quote.cancellation_reason = reason
        update_fields.append("cancellation_reason")
    elif t.action == "start_treatment":
        quote.treatment_agent = actor
        update_fields.append("treatment_agent")

    quote.save(update_fields=update_fields)

    metadata = {k: v for k, v in payload.items() if k != "note"}
    entry = QuoteLog.objects.create(
        quote=quote,
        event_type=t.log_event,
        old_status=old_status,
        new_status=t.target,
        changed_by=_user_or_none(actor),
        actor=actor_label(actor),
        created_at=now,
        notes=payload.get("note") or reason,
        metadata=metadata,
    )

    event = {
        "quote_id": quote.pk,
        "quote_number": quote.quote_number,
        "old_status": old_status,
        "status": t.target,
        "actor": entry.actor,
        "contact_email": quote.contact_email,
        "account_id": quote.account_id,
    }
    if t.action == "send":
        event["tracking_token"] = quote.tracking_token
        event["valid_until"] = quote.valid_until
        event["estimated_cost"] = quote.estimated_cost
        event["currency"] = quote.currency
    emit_on_commit(t.event_name, event)

    logger.info("Quote %s: %s -> %s by %s", quote.quote_number, old_status, t.target, entry.actor)
    return entry


def transition(
    quote_id: int,
    action: str,
    actor=None,
    payload: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Quote:
    """
    Apply a lifecycle action to a quote.

    Args:
        quote_id: primary key of the quote
        action: one of ACTIONS
        actor: the acting user, or None for the system
        payload: free-form details; ``reason`` and ``note`` are recognised,
            everything else lands in the log entry's metadata
        now: evaluation time (defaults to the current time)

    Returns:
        The updated quote

    Raises:
        InvalidTransitionError: the action is not allowed; nothing is written
        QuoteExpiredError: ``accept`` after the validity window; the quote has
            been moved to EXPIRED and that change is committed
        Quote.DoesNotExist: unknown quote id
    """
    now = now or timezone.now()
    payload = dict(payload or {})
    expired_on_accept = False

    with transaction.atomic():
        quote = Quote.objects.select_for_update().get(pk=quote_id)
        t = TRANSITIONS.get(action)
        if t is None:
            raise InvalidTransitionError(quote.status, action, "unknown action")

        if action == "accept" and quote.status == Quote.SENT and now >= quote.valid_until:
            _apply(
                quote,
                TRANSITIONS["expire"],
                actor,
                {"note": "Acceptance attempted after the validity window", "attempted_action": action},
                now,
            )
            expired_on_accept = True
        else:
            _check_guard(quote, t, actor, payload, now)
            _apply(quote, t, actor, payload, now)

    if expired_on_accept:
        logger.info("Quote %s expired on late acceptance", quote.quote_number)
        raise QuoteExpiredError(action, quote.valid_until)
    return quote


def expire_if_due(quote: Quote, now: Optional[datetime] = None) -> Quote:
    """Lazy expiry on read: returns the quote, moved to EXPIRED if its window has passed."""
    now = now or timezone.now()
    if quote.status not in TRANSITIONS["expire"].sources or not now > quote.valid_until:
        return quote
    try:
        return transition(quote.pk, "expire", None, {"trigger": "read"}, now=now)
    except InvalidTransitionError:
        # Someone else moved it first
        quote.refresh_from_db()
        return quote


def expire_overdue_quotes(now: Optional[datetime] = None) -> int:
    """Periodic sweep; returns how many quotes were expired."""
    now = now or timezone.now()
    candidates = list(
        Quote.objects.filter(
            status__in=TRANSITIONS["expire"].sources,
            valid_until__lt=now,
        ).values_list("pk", flat=True)
    )
    expired = 0
    for pk in candidates:
        try:
            transition(pk, "expire", None, {"trigger": "sweep"}, now=now)
        except InvalidTransitionError as exc:
            logger.info("Skipping quote %s during expiry sweep: %s", pk, exc)
            continue
        expired += 1
    logger.info("Expiry sweep: %s of %s candidate quotes expired", expired, len(candidates))
    return expired


def create_quote(
    shipment: ShipmentInput,
    *,
    account=None,
    contact_email: Optional[str] = None,
    contact_phone: Optional[str] = None,
    contact_name: Optional[str] = None,
    prospect=None,
    actor=None,
    source: str = "client",
    now: Optional[datetime] = None,
) -> Quote:
    """
    Price and persist a new DRAFT quote with its packages.

    The estimate is computed first, so an unusable shipment raises
    InvalidShipmentError before anything is written.
    """
    now = now or timezone.now()
    provider = get_config_provider()
    config = provider.get_pricing_config()
    distance = provider.get_distance(shipment.origin_country, shipment.destination_country)
    estimate = compute_estimate(shipment, config, distance_km=distance)

    if account is not None:
        contact_email = contact_email or account.email or None
        contact_phone = contact_phone or getattr(account, "phone", None) or None
        contact_name = contact_name or account.get_full_name() or None
    if contact_email:
        contact_email = contact_email.strip().lower()

    validity = timedelta(days=getattr(settings, "QUOTE_VALIDITY_DAYS", 30))
    issued = token_service.issue(TRACKING, now=now)

    with transaction.atomic():
        quote = Quote.objects.create(
            quote_number=next_quote_number(now),
            status=Quote.DRAFT,
            origin_country=shipment.origin_country,
            destination_country=shipment.destination_country,
            cargo_type=shipment.cargo_type,
            transport_modes=list(shipment.transport_modes),
            priority=shipment.priority,
            currency=estimate.currency,
            weight_kg=shipment.actual_weight if (shipment.packages or shipment.weight_kg is not None) else None,
            length_cm=None if shipment.packages else shipment.length_cm,
            width_cm=None if shipment.packages else shipment.width_cm,
            height_cm=None if shipment.packages else shipment.height_cm,
            chargeable_weight_kg=estimate.chargeable_weight_kg,
            estimated_cost=estimate.estimated_cost,
            estimated_delivery_days=estimate.estimated_delivery_days,
            selected_mode=estimate.selected_mode,
            pricing_snapshot={
                "config_version": config.version,
                "distance_km": distance,
                **estimate.to_dict(),
            },
            created_at=now,
            valid_until=now + validity,
            tracking_token=issued.token,
            token_expires_at=issued.expires_at,
            account=account,
            is_attached_to_account=account is not None,
            contact_email=contact_email,
            contact_phone=contact_phone,
            contact_name=contact_name,
            prospect=prospect,
        )
        _create_packages(quote, shipment)
        QuoteLog.objects.create(
            quote=quote,
            event_type=QuoteLog.CREATED,
            old_status=None,
            new_status=Quote.DRAFT,
            changed_by=_user_or_none(actor),
            actor=actor_label(actor),
            created_at=now,
            metadata={"source": source, "estimated_cost": estimate.estimated_cost},
        )
        emit_on_commit(
            "quote/created",
            {
                "quote_id": quote.pk,
                "quote_number": quote.quote_number,
                "source": source,
                "account_id": quote.account_id,
                "contact_email": quote.contact_email,
            },
        )

    logger.info("Created quote %s (%s) from %s", quote.quote_number, estimate.estimated_cost, source)
    return quote


def _create_packages(quote: Quote, shipment: ShipmentInput) -> Iterable[Package]:
    rows = [
        Package(
            quote=quote,
            description=p.description,
            quantity=p.quantity,
            cargo_type=p.cargo_type or shipment.cargo_type,
            weight_kg=p.weight_kg,
            length_cm=p.length_cm,
            width_cm=p.width_cm,
            height_cm=p.height_cm,
            unit_price=p.unit_price,
        )
        for p in shipment.packages
    ]
    return Package.objects.bulk_create(rows)


def refresh_tracking_token(quote_id: int, actor=None, now: Optional[datetime] = None) -> Quote:
    """Issue a fresh tracking token (the old one stops working immediately)."""
    now = now or timezone.now()
    with transaction.atomic():
        quote = Quote.objects.select_for_update().get(pk=quote_id)
        issued = token_service.issue(TRACKING, now=now)
        quote.tracking_token = issued.token
        quote.token_expires_at = issued.expires_at
        quote.save(update_fields=["tracking_token", "token_expires_at", "updated_at"])
        QuoteLog.objects.create(
            quote=quote,
            event_type=QuoteLog.TOKEN_REFRESHED,
            old_status=quote.status,
            new_status=quote.status,
            changed_by=_user_or_none(actor),
            actor=actor_label(actor),
            created_at=now,
            metadata={"expires_at": issued.expires_at},
        )
        emit_on_commit(
            "quote/tracking-token-refreshed",
            {
                "quote_id": quote.pk,
                "quote_number": quote.quote_number,
                "contact_email": quote.contact_email,
                "tracking_token": quote.tracking_token,
                "expires_at": quote.token_expires_at,
            },
        )
    return quote
