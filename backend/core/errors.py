"""
Error taxonomy shared by the pricing, lifecycle, token and reconciliation services.

Services raise these; API views (through ``core.exception_handler``) turn them
into ``{"detail": ...}`` responses. Anything not derived from ``FreightError``
is treated as an infrastructure failure and reported generically.
"""

from __future__ import annotations

from typing import Dict, List, Optional


class FreightError(Exception):
    """Base exception for freight quoting errors"""
    pass


class InvalidShipmentError(FreightError):
    """Raised when a shipment description cannot be priced"""

    def __init__(self, field_errors: Dict[str, List[str]]):
        self.field_errors = field_errors
        fields = ", ".join(sorted(field_errors))
        super().__init__(f"Invalid shipment: check {fields}")


class InvalidTransitionError(FreightError):
    """Raised when a lifecycle action is not allowed from the quote's current status"""

    def __init__(self, current_status: str, action: str, reason: Optional[str] = None):
        self.current_status = current_status
        self.action = action
        self.reason = reason
        message = f"Cannot {action} a quote in status {current_status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class QuoteExpiredError(InvalidTransitionError):
    """Raised when acceptance is attempted after the validity window; the quote is now EXPIRED"""

    def __init__(self, action: str, valid_until):
        super().__init__("EXPIRED", action, reason=f"quote expired on {valid_until.isoformat()}")
        self.valid_until = valid_until


class TokenError(FreightError):
    """Base for token lookups. Subclasses share one caller-facing message."""

    public_message = "This link is invalid or has expired."

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(self.public_message)


class TokenNotFoundError(TokenError):
    pass


class TokenExpiredError(TokenError):
    pass


class ReconciliationConflictError(FreightError):
    """Raised when an orphan could not be attached atomically"""

    def __init__(self, source: str, pk):
        self.source = source
        self.pk = pk
        super().__init__(f"Could not attach {source} {pk}; retry the reconciliation")


class ConfigUnavailableError(FreightError):
    """Pricing configuration could not be read. Logged, resolved via fallback, never raised to callers."""
    pass
