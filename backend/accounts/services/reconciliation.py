"""
Attach guest-created records ("orphans") to an account once its owner registers.

Idempotence comes from the ``account IS NULL`` predicate alone: every attach is
a conditional UPDATE, so rows attached by an earlier or concurrent run simply
stop matching and are counted zero times.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from django.db import OperationalError, transaction
from django.utils import timezone

from core.errors import ReconciliationConflictError
from core.events import emit_on_commit
from pickups.models import PickupRequest
from prospects.services import mark_converted, normalize_email
from quotes.models import Quote, QuoteLog

logger = logging.getLogger(__name__)


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    if not phone:
        return None
    digits = "".join(ch for ch in phone if ch.isdigit() or ch == "+")
    return digits or None


@dataclass(frozen=True)
class Identity:
    email: str
    phone: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "email", normalize_email(self.email))
        object.__setattr__(self, "phone", normalize_phone(self.phone))

    @classmethod
    def for_user(cls, user) -> "Identity":
        return cls(email=user.email or "", phone=getattr(user, "phone", None))


@dataclass
class ReconciliationResult:
    attached_count: int = 0
    attached_ids: Dict[str, List[int]] = field(default_factory=dict)

    def add(self, source: str, pk: int) -> None:
        self.attached_ids.setdefault(source, []).append(pk)
        self.attached_count += 1

    def to_dict(self) -> dict:
        return {"attached_count": self.attached_count, "attached_ids": self.attached_ids}


class OrphanSource:
    """One kind of record that can be created without an account."""

    name = ""

    def find_orphans_matching(self, identity: Identity) -> List[int]:
        raise NotImplementedError

    def attach(self, pk: int, account, now: datetime) -> bool:
        """Attach one row; False when it was no longer an orphan."""
        raise NotImplementedError


class ModelOrphanSource(OrphanSource):
    """
    Orphans stored on a model with ``account``, ``is_attached_to_account``,
    ``contact_email`` and ``contact_phone`` columns.

    Email must match. Phone is compared only when both the identity and the
    row carry one.
    """

    model = None

    def find_orphans_matching(self, identity: Identity) -> List[int]:
        if not identity.email:
            return []
        rows = self.model.objects.filter(account__isnull=True, contact_email__iexact=identity.email)
        pks = []
        for pk, phone in rows.order_by("pk").values_list("pk", "contact_phone"):
            stored = normalize_phone(phone)
            if identity.phone and stored and stored != identity.phone:
                continue
            pks.append(pk)
        return pks

    def _claim(self, pk: int, account, **extra) -> bool:
        updated = self.model.objects.filter(pk=pk, account__isnull=True).update(
            account=account, is_attached_to_account=True, **extra
        )
        return updated == 1

    def attach(self, pk: int, account, now: datetime) -> bool:
        return self._claim(pk, account)


class QuoteOrphanSource(ModelOrphanSource):
    name = "quotes"
    model = Quote

    def attach(self, pk: int, account, now: datetime) -> bool:
        if not self._claim(pk, account, updated_at=now):
            return False
        status = Quote.objects.filter(pk=pk).values_list("status", flat=True).get()
        QuoteLog.objects.create(
            quote_id=pk,
            event_type=QuoteLog.ATTACHED_TO_ACCOUNT,
            old_status=status,
            new_status=status,
            actor="system",
            created_at=now,
            metadata={"account_id": account.pk},
        )
        return True


class PickupOrphanSource(ModelOrphanSource):
    name = "pickups"
    model = PickupRequest


def default_sources() -> List[OrphanSource]:
    return [QuoteOrphanSource(), PickupOrphanSource()]


def attach_orphans(
    account,
    identity: Optional[Identity] = None,
    sources: Optional[Iterable[OrphanSource]] = None,
    now: Optional[datetime] = None,
) -> ReconciliationResult:
    """
    Attach every orphan whose contact identity matches ``identity`` (the
    account's own email/phone by default). Safe to call any number of times.

    Each source is handled in its own transaction. Matching prospects are
    marked CONVERTED.
    """
    now = now or timezone.now()
    identity = identity or Identity.for_user(account)
    result = ReconciliationResult()
    if not identity.email:
        logger.info("Account %s has no email; nothing to reconcile", account.pk)
        return result

    for source in sources if sources is not None else default_sources():
        with transaction.atomic():
            for pk in source.find_orphans_matching(identity):
                try:
                    with transaction.atomic():
                        attached = source.attach(pk, account, now)
                except OperationalError as exc:
                    raise ReconciliationConflictError(source.name, pk) from exc
                if attached:
                    result.add(source.name, pk)

    converted = mark_converted(identity.email, account, now=now)

    if result.attached_count:
        emit_on_commit(
            "account/orphans-attached",
            {"account_id": account.pk, **result.to_dict()},
        )
    logger.info(
        "Reconciled account %s: %s record(s) attached, %s prospect(s) converted",
        account.pk,
        result.attached_count,
        converted,
    )
    return result
