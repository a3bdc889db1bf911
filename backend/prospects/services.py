from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Tuple

from django.db import transaction
from django.utils import timezone

from core.errors import TokenNotFoundError
from core.events import emit_on_commit
from core.tokens import INVITATION, token_service
from pricing.dataclasses import ShipmentInput
from quotes.models import Quote
from quotes.services.lifecycle import create_quote
from .models import Prospect

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def register_prospect(
    email: str,
    phone: Optional[str] = None,
    name: Optional[str] = None,
    company: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Prospect:
    """
    Create the prospect for ``email`` or bring an existing one back to PENDING.

    An EXPIRED prospect, or a PENDING one whose invitation ran out, gets a
    brand-new invitation token; the old token never becomes valid again.
    """
    now = now or timezone.now()
    email = normalize_email(email)

    with transaction.atomic():
        prospect = Prospect.objects.select_for_update().filter(email=email).first()
        if prospect is None:
            issued = token_service.issue(INVITATION, now=now)
            prospect = Prospect.objects.create(
                email=email,
                phone=phone or None,
                name=name or None,
                company=company or None,
                status=Prospect.PENDING,
                invitation_token=issued.token,
                invitation_expires_at=issued.expires_at,
                last_request_at=now,
            )
            logger.info("New prospect %s", prospect.pk)
            return prospect

        prospect.phone = phone or prospect.phone
        prospect.name = name or prospect.name
        prospect.company = company or prospect.company
        prospect.last_request_at = now

        stale = prospect.status == Prospect.EXPIRED or (
            prospect.status == Prospect.PENDING and now >= prospect.invitation_expires_at
        )
        if stale:
            issued = token_service.issue(INVITATION, now=now)
            prospect.status = Prospect.PENDING
            prospect.invitation_token = issued.token
            prospect.invitation_expires_at = issued.expires_at
            logger.info("Prospect %s reactivated with a new invitation", prospect.pk)
        prospect.save()
    return prospect


def validate_invitation(token: str, now: Optional[datetime] = None) -> Prospect:
    """Resolve a live invitation. Used invitations look exactly like unknown ones."""
    prospect = token_service.resolve(INVITATION, token, now=now)
    if prospect.status != Prospect.PENDING:
        raise TokenNotFoundError(INVITATION)
    return prospect


def expire_prospects(now: Optional[datetime] = None) -> int:
    now = now or timezone.now()
    count = Prospect.objects.filter(
        status=Prospect.PENDING,
        invitation_expires_at__lte=now,
    ).update(status=Prospect.EXPIRED, updated_at=now)
    logger.info("Expired %s prospect invitation(s)", count)
    return count


def mark_converted(email: str, account, now: Optional[datetime] = None) -> int:
    """Flag the prospect behind ``email`` as converted to ``account``; safe to repeat."""
    now = now or timezone.now()
    return (
        Prospect.objects.filter(email=normalize_email(email))
        .exclude(status=Prospect.CONVERTED)
        .update(status=Prospect.CONVERTED, account=account, converted_at=now, updated_at=now)
    )


def request_quote(
    shipment: ShipmentInput,
    email: str,
    phone: Optional[str] = None,
    name: Optional[str] = None,
    company: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[Prospect, Quote]:
    """
    Guest quote request: upsert the prospect and store an orphan DRAFT quote
    carrying the contact snapshot, to be attached once the visitor registers.
    """
    now = now or timezone.now()
    with transaction.atomic():
        prospect = register_prospect(email, phone=phone, name=name, company=company, now=now)
        # A converted prospect already has an account; no orphan needed
        account = prospect.account if prospect.status == Prospect.CONVERTED else None
        quote = create_quote(
            shipment,
            account=account,
            contact_email=prospect.email,
            contact_phone=phone or prospect.phone,
            contact_name=name or prospect.name,
            prospect=prospect,
            source="guest",
            now=now,
        )
        emit_on_commit(
            "prospect/quote-requested",
            {
                "prospect_id": prospect.pk,
                "email": prospect.email,
                "name": prospect.name,
                "invitation_token": prospect.invitation_token,
                "invitation_expires_at": prospect.invitation_expires_at,
                "quote_id": quote.pk,
                "quote_number": quote.quote_number,
                "tracking_token": quote.tracking_token,
            },
        )
    return prospect, quote
