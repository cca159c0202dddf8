"""SMS gateways used for reminders and cancellation notices.

``SMS_PROVIDER`` picks the gateway: ``console`` (development) prints the
message, ``http`` posts JSON to ``SMS_API_URL`` with ``SMS_API_KEY`` as a
bearer token.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Dict, Optional, Type

import requests
from django.conf import settings

__all__ = [
    "SMSConfigurationError",
    "BaseSMSProvider",
    "ConsoleSMSProvider",
    "HttpSMSProvider",
    "normalize_phone_number",
    "get_sms_provider",
    "really_send_sms",
]

logger = logging.getLogger(__name__)

PHONE_SEPARATORS = re.compile(r"[\s\-().]")
DEFAULT_TIMEOUT = 8


class SMSConfigurationError(RuntimeError):
    """Raised when the SMS subsystem is misconfigured."""


def normalize_phone_number(phone_number: str) -> str:
    """Strip separators and turn a ``00`` prefix into ``+``; reject anything that is not a number."""
    cleaned = PHONE_SEPARATORS.sub("", phone_number or "")
    if cleaned.startswith("00"):
        cleaned = "+" + cleaned[2:]
    digits = cleaned[1:] if cleaned.startswith("+") else cleaned
    if not digits.isdigit() or len(digits) < 7:
        raise ValueError(f"'{phone_number}' is not a valid phone number.")
    return cleaned


class BaseSMSProvider:
    name = ""

    @classmethod
    def from_settings(cls) -> "BaseSMSProvider":
        return cls()

    def send(self, phone_number: str, message: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class ConsoleSMSProvider(BaseSMSProvider):
    name = "console"

    def send(self, phone_number: str, message: str) -> None:
        print(f"Sending SMS to {phone_number}: {message}")


class HttpSMSProvider(BaseSMSProvider):
    name = "http"

    def __init__(self, api_url: str, api_key: str, sender: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "HttpSMSProvider":
        api_key = getattr(settings, "SMS_API_KEY", None)
        api_url = getattr(settings, "SMS_API_URL", None)
        if not api_key or not api_url:
            raise SMSConfigurationError("SMS_API_KEY and SMS_API_URL must be set for the http SMS provider.")
        return cls(
            api_url=api_url,
            api_key=api_key,
            sender=getattr(settings, "SMS_SENDER", None),
            timeout=getattr(settings, "SMS_TIMEOUT", DEFAULT_TIMEOUT),
        )

    def send(self, phone_number: str, message: str) -> None:
        payload: Dict[str, str] = {"to": phone_number, "message": message}
        if self.sender:
            payload["sender"] = self.sender

        try:
            response = requests.post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException:
            logger.exception("SMS gateway rejected message to %s", phone_number)
            raise


PROVIDERS: Dict[str, Type[BaseSMSProvider]] = {
    provider.name: provider for provider in (ConsoleSMSProvider, HttpSMSProvider)
}


@lru_cache(maxsize=1)
def get_sms_provider() -> BaseSMSProvider:
    provider_name = (getattr(settings, "SMS_PROVIDER", "") or ConsoleSMSProvider.name).lower()
    try:
        provider_class = PROVIDERS[provider_name]
    except KeyError:
        raise SMSConfigurationError(f"Unsupported SMS provider '{provider_name}'.")
    return provider_class.from_settings()


def really_send_sms(phone_number: str, message: str) -> None:
    """Send ``message`` right away through the configured gateway; errors propagate."""
    get_sms_provider().send(normalize_phone_number(phone_number), message)
