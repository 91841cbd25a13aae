from __future__ import annotations

import json

import httpx
import pytest

from account_service.domain.contracts import EmailMessage
from account_service.domain.errors import EmailDeliveryError
from account_service.notifications.email import NotificationServiceEmailSender

MESSAGE = EmailMessage(
    to="alice@example.com",
    subject="Account Verification Required!",
    template="userVerificationRequest",
    data={"URL": "http://testserver/v1/users/verify/abc", "name": "alice"},
)


def _sender(handler) -> NotificationServiceEmailSender:
    client = httpx.Client(base_url="http://notifications", transport=httpx.MockTransport(handler))
    return NotificationServiceEmailSender("http://notifications", client=client)


def test_sends_template_request():
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json={"email_id": "e-1"})

    _sender(handler).send(MESSAGE)

    assert len(captured) == 1
    request = captured[0]
    assert request.url.path == "/api/v1/emails/send-template"
    body = json.loads(request.content)
    assert body["to_emails"] == ["alice@example.com"]
    assert body["template_name"] == "userVerificationRequest"
    assert body["template_variables"]["name"] == "alice"
    assert body["subject_override"] == "Account Verification Required!"


def test_http_errors_become_delivery_errors():
    sender = _sender(lambda request: httpx.Response(503, json={"detail": "down"}))
    with pytest.raises(EmailDeliveryError, match="503"):
        sender.send(MESSAGE)


def test_transport_errors_become_delivery_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(EmailDeliveryError, match="unreachable"):
        _sender(handler).send(MESSAGE)
