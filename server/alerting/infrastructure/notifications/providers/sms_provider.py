from __future__ import annotations
"""server/alerting/infrastructure/notifications/providers/sms_provider.py
~~~~~~~~~~~~~~~~~~~~~~~~
SmsProvider: SMS via l'API REST Twilio.

Un message court par numéro configuré ; l'envoi est en échec si au moins un
numéro échoue (les autres numéros sont tout de même tentés).
"""

import logging

from twilio.base.exceptions import TwilioException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from alerting.domain.channel_config import SmsConfig
from alerting.domain.entities import AlertEvent, ChannelType
from alerting.domain.errors import DeliveryError
from alerting.infrastructure.notifications.providers.base import BaseProvider, body_text, tag

logger = logging.getLogger(__name__)

SMS_MAX_CHARS = 320


def _mask(phone: str) -> str:
    return phone[-4:].rjust(len(phone), "*")


class SmsProvider(BaseProvider):
    channel_type = ChannelType.SMS
    config: SmsConfig

    def __init__(self, config: SmsConfig, **kw):
        super().__init__(config, **kw)
        self._client = None

    @property
    def client(self) -> Client:
        """Client Twilio créé à la première utilisation."""
        if self._client is None:
            self._client = Client(
                self.config.account_sid,
                self.config.auth_token,
                http_client=TwilioHttpClient(timeout=self.timeout),
            )
        return self._client

    def format_message(self, event: AlertEvent) -> str:
        text = f"[{tag(event)}] {body_text(event)}"
        return text if len(text) <= SMS_MAX_CHARS else text[: SMS_MAX_CHARS - 3] + "..."

    def send(self, event: AlertEvent) -> None:
        body = self.format_message(event)
        failed: list[str] = []
        for phone in self.config.to:
            try:
                self.client.messages.create(body=body, from_=self.config.sender, to=phone)
            except (TwilioException, OSError) as exc:
                logger.warning("sms failed", extra={"to": _mask(phone), "error": str(exc)})
                failed.append(_mask(phone))
        if failed:
            raise DeliveryError(f"sms: failed for {', '.join(failed)}")
