from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import requests
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction

logger = logging.getLogger(__name__)
alerts = logging.getLogger("freight.alerts")


class EventNotifier:
    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError


class LoggingEventNotifier(EventNotifier):
    """Default notifier: records the event in the application log only."""

    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        logger.info("event %s %s", event_name, json.dumps(payload, cls=DjangoJSONEncoder, sort_keys=True))


class WebhookEventNotifier(EventNotifier):
    """
    POSTs events to an external worker endpoint (notifications, reminders).
    Delivery is not confirmed beyond the HTTP status.
    """

    def __init__(self, url: Optional[str] = None, timeout: Optional[float] = None, session=None):
        self.url = url or settings.EVENT_WEBHOOK_URL
        self.timeout = timeout if timeout is not None else settings.EVENT_WEBHOOK_TIMEOUT
        self.session = session or requests.Session()

    def emit(self, event_name: str, payload: Dict[str, Any]) -> None:
        body = json.dumps({"name": event_name, "data": payload}, cls=DjangoJSONEncoder)
        resp = self.session.post(
            self.url,
            data=body,
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )
        resp.raise_for_status()


def load(name: Optional[str] = None) -> EventNotifier:
    """
    Pick a notifier by name.
    - 'webhook' -> WebhookEventNotifier (requires EVENT_WEBHOOK_URL)
    - 'log', None -> LoggingEventNotifier
    """
    key = (name or "").strip().lower()
    if not key:
        key = "webhook" if getattr(settings, "EVENT_WEBHOOK_URL", "") else "log"
    if key == "webhook":
        return WebhookEventNotifier()
    return LoggingEventNotifier()


def get_notifier() -> EventNotifier:
    return load()


def emit(event_name: str, payload: Dict[str, Any], notifier: Optional[EventNotifier] = None) -> bool:
    """Fire-and-forget emission. Failures go to the alerts channel and never propagate."""
    notifier = notifier or get_notifier()
    logger.debug("emitting %s", event_name)
    try:
        notifier.emit(event_name, payload)
    except Exception:
        alerts.exception("Failed to emit event %s", event_name)
        return False
    return True


def emit_on_commit(event_name: str, payload: Dict[str, Any]) -> None:
    """Schedule emission after the surrounding transaction commits."""
    transaction.on_commit(lambda: emit(event_name, payload))
