"""Email senders used by the verification flow."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from ..domain.contracts import EmailMessage
from ..domain.errors import EmailDeliveryError

logger = logging.getLogger(__name__)

VERIFICATION_REQUESTED_TEMPLATE = "userVerificationRequest"
VERIFICATION_REQUESTED_SUBJECT = "Account Verification Required!"
ACCOUNT_VERIFIED_TEMPLATE = "accountVerified"
ACCOUNT_VERIFIED_SUBJECT = "Account Verification Success!"


class EmailSender(Protocol):
    def send(self, message: EmailMessage) -> None: ...


class LoggingEmailSender:
    """Development sender that only records the dispatch in the log."""

    def send(self, message: EmailMessage) -> None:
        logger.info("email %s queued for %s (log backend)", message.template, message.to)


class NotificationServiceEmailSender:
    """Deliver template emails through the notification service's HTTP API.

    Parameters
    ----------
    base_url:
        Root URL of the notification service.
    timeout_seconds:
        Applied to connect, read and write on every request.
    client:
        Optional pre-built ``httpx.Client``; tests pass one with a mock transport.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._client = client or httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers={"Content-Type": "application/json"},
        )

    def send(self, message: EmailMessage) -> None:
        payload = {
            "to_emails": [message.to],
            "template_name": message.template,
            "template_variables": message.data,
            "subject_override": message.subject,
            "priority": "normal",
            "tags": ["account-service", message.template],
        }
        try:
            response = self._client.post("/api/v1/emails/send-template", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise EmailDeliveryError(
                f"notification service returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.RequestError as exc:
            raise EmailDeliveryError(f"notification service unreachable: {exc}") from exc
        logger.info("email %s sent to %s", message.template, message.to)

    def close(self) -> None:
        self._client.close()
