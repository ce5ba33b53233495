"""
Email-send collaborator.

Template rendering and delivery live in an external email service; this module
only hands it `{to, template, variables}`.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Protocol

import requests

from config.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10


class EmailSender(Protocol):
    def send(self, to: str, template: str, context: Mapping[str, Any]) -> None: ...


class EmailDeliveryError(RuntimeError):
    pass


class HttpEmailSender:
    """POSTs send requests to the email service as JSON."""

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._timeout = timeout
        self._session = session or requests.Session()

    def send(self, to: str, template: str, context: Mapping[str, Any]) -> None:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            response = self._session.post(
                self._url,
                json={"to": to, "template": template, "variables": dict(context)},
                headers=headers,
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise EmailDeliveryError(f"Email service rejected {template} for {to}: {e}") from e


class LoggingEmailSender:
    """Used when no email service is configured: log the send and skip it."""

    def send(self, to: str, template: str, context: Mapping[str, Any]) -> None:
        logger.warning(
            "Email service not configured; skipping send",
            extra={"template": template, "recipient": to},
        )


def build_email_sender(settings: Settings) -> EmailSender:
    if not settings.email_service_url:
        return LoggingEmailSender()
    return HttpEmailSender(settings.email_service_url, settings.email_service_api_key)


__all__ = [
    "EmailSender",
    "EmailDeliveryError",
    "HttpEmailSender",
    "LoggingEmailSender",
    "build_email_sender",
]
