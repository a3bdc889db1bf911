from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from ..models import QuoteSequence


def format_quote_number(day: date, seq: int, prefix: Optional[str] = None) -> str:
    prefix = prefix or getattr(settings, "QUOTE_NUMBER_PREFIX", "QTE")
    return f"{prefix}-{day:%Y%m%d}-{seq:05d}"


def next_quote_number(now: Optional[datetime] = None) -> str:
    """
    Allocate the next quote number for the local calendar day of ``now``.

    The day's counter row is locked with select_for_update, so concurrent
    callers are serialized and each gets a distinct, increasing value.
    Must run inside the caller's transaction for the number to be released
    together with the quote insert on rollback.
    """
    day = timezone.localdate(now) if now else timezone.localdate()
    with transaction.atomic():
        seq = QuoteSequence.objects.select_for_update().filter(day=day).first()
        if seq is None:
            try:
                with transaction.atomic():
                    seq = QuoteSequence.objects.create(day=day, last_value=0)
            except IntegrityError:
                # Another request created the row first
                seq = QuoteSequence.objects.select_for_update().get(day=day)
        seq.last_value += 1
        seq.save(update_fields=["last_value"])
    return format_quote_number(day, seq.last_value)
