from __future__ import annotations

from datetime import datetime
from typing import Optional

from core.tokens import TRACKING, token_service
from ..models import Quote
from .lifecycle import expire_if_due


def track_quote(token: str, now: Optional[datetime] = None) -> Quote:
    """
    Anonymous status lookup by tracking token.

    Raises TokenNotFoundError / TokenExpiredError (same public message).
    Reading an overdue SENT or ACCEPTED quote expires it first.
    """
    quote = token_service.resolve(TRACKING, token, now=now)
    return expire_if_due(quote, now=now)
