from unittest import mock

import pytest
import requests
from django.test import override_settings

from core import events
from core.events import LoggingEventNotifier, WebhookEventNotifier, emit


def test_load_defaults_to_logging():
    with override_settings(EVENT_WEBHOOK_URL=""):
        assert isinstance(events.load(), LoggingEventNotifier)
        assert isinstance(events.load("log"), LoggingEventNotifier)


def test_load_webhook_when_configured():
    with override_settings(EVENT_WEBHOOK_URL="https://hooks.example.com/freight", EVENT_WEBHOOK_TIMEOUT=2):
        notifier = events.load()
    assert isinstance(notifier, WebhookEventNotifier)
    assert notifier.url == "https://hooks.example.com/freight"
    assert notifier.timeout == 2


def test_webhook_posts_json_envelope():
    session = mock.Mock()
    notifier = WebhookEventNotifier(url="https://hooks.example.com/e", timeout=3, session=session)
    notifier.emit("quote/sent", {"quote_number": "QTE-20260101-00001"})

    _, kwargs = session.post.call_args
    assert session.post.call_args.args == ("https://hooks.example.com/e",)
    assert kwargs["timeout"] == 3
    assert kwargs["headers"]["Content-Type"] == "application/json"
    assert '"name": "quote/sent"' in kwargs["data"]
    session.post.return_value.raise_for_status.assert_called_once()


def test_emit_swallows_delivery_failures():
    session = mock.Mock()
    session.post.return_value.raise_for_status.side_effect = requests.HTTPError("502")
    notifier = WebhookEventNotifier(url="https://hooks.example.com/e", timeout=1, session=session)
    with mock.patch.object(events, "alerts") as alerts:
        assert emit("quote/accepted", {"quote_id": 1}, notifier=notifier) is False
    alerts.exception.assert_called_once()


def test_emit_success():
    notifier = mock.Mock()
    assert emit("quote/created", {"quote_id": 1}, notifier=notifier) is True
    notifier.emit.assert_called_once_with("quote/created", {"quote_id": 1})


@pytest.mark.django_db
def test_emit_on_commit_waits_for_commit(django_capture_on_commit_callbacks):
    notifier = mock.Mock()
    with mock.patch.object(events, "get_notifier", return_value=notifier):
        with django_capture_on_commit_callbacks() as callbacks:
            events.emit_on_commit("quote/created", {"quote_id": 1})
            notifier.emit.assert_not_called()
        assert len(callbacks) == 1
        callbacks[0]()
    notifier.emit.assert_called_once()
