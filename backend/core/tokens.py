from __future__ import annotations

import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Optional

from django.apps import apps
from django.conf import settings
from django.utils.timezone import now as tz_now

from .errors import TokenExpiredError, TokenNotFoundError

logger = logging.getLogger(__name__)

TRACKING = "tracking"
INVITATION = "invitation"

# secrets.token_urlsafe(32) yields 43 characters
TOKEN_BYTES = 32
_TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]{20,64}$")


class TokenStatus(str, Enum):
    VALID = "valid"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class TokenPolicy:
    kind: str
    lifetime: timedelta
    model: str  # "app_label.Model" owning the token
    token_field: str
    expiry_field: str


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


def default_policies() -> Dict[str, TokenPolicy]:
    return {
        TRACKING: TokenPolicy(
            kind=TRACKING,
            lifetime=timedelta(hours=getattr(settings, "TRACKING_TOKEN_HOURS", 72)),
            model="quotes.Quote",
            token_field="tracking_token",
            expiry_field="token_expires_at",
        ),
        INVITATION: TokenPolicy(
            kind=INVITATION,
            lifetime=timedelta(days=getattr(settings, "INVITATION_TOKEN_DAYS", 7)),
            model="prospects.Prospect",
            token_field="invitation_token",
            expiry_field="invitation_expires_at",
        ),
    }


class TokenService:
    """
    Issues and validates opaque tracking/invitation tokens.

    A token is only a random string; what it unlocks and when it stops working
    live on the owning row (quote or prospect). Lookups of malformed and of
    unknown tokens are reported identically.
    """

    def __init__(self, policies: Optional[Dict[str, TokenPolicy]] = None):
        self.policies = policies if policies is not None else default_policies()

    def _policy(self, kind: str) -> TokenPolicy:
        try:
            return self.policies[kind]
        except KeyError:
            raise ValueError(f"Unknown token kind: {kind}")

    def issue(self, kind: str, now: Optional[datetime] = None) -> IssuedToken:
        policy = self._policy(kind)
        at = now or tz_now()
        return IssuedToken(token=secrets.token_urlsafe(TOKEN_BYTES), expires_at=at + policy.lifetime)

    def _lookup(self, policy: TokenPolicy, token: str):
        if not isinstance(token, str) or not _TOKEN_RE.match(token):
            return None
        model = apps.get_model(policy.model)
        return model.objects.filter(**{policy.token_field: token}).first()

    def validate(self, kind: str, token: str, now: Optional[datetime] = None) -> TokenStatus:
        policy = self._policy(kind)
        row = self._lookup(policy, token)
        if row is None:
            return TokenStatus.NOT_FOUND
        expires_at = getattr(row, policy.expiry_field)
        if expires_at is None or (now or tz_now()) >= expires_at:
            return TokenStatus.EXPIRED
        return TokenStatus.VALID

    def resolve(self, kind: str, token: str, now: Optional[datetime] = None):
        """Return the row owning a live token, or raise a TokenError subclass."""
        policy = self._policy(kind)
        row = self._lookup(policy, token)
        if row is None:
            logger.info("%s token lookup failed: not found", kind)
            raise TokenNotFoundError(kind)
        expires_at = getattr(row, policy.expiry_field)
        if expires_at is None or (now or tz_now()) >= expires_at:
            logger.info("%s token lookup failed: expired (row %s)", kind, row.pk)
            raise TokenExpiredError(kind)
        return row


token_service = TokenService()
