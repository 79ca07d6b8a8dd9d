from __future__ import annotations
"""server/alerting/infrastructure/notifications/providers/slack_provider.py
~~~~~~~~~~~~~~~~~~~~~~~~
SlackProvider: envoi via webhook Slack (Incoming Webhooks, attachments).
"""

import time
from typing import Any

from alerting.domain.channel_config import SlackConfig
from alerting.domain.entities import AlertEvent, ChannelType
from alerting.infrastructure.notifications.providers.base import (
    BaseProvider,
    body_text,
    color_for,
    condition_text,
    event_time,
    headline,
    human_time,
    value_text,
)


class SlackProvider(BaseProvider):
    channel_type = ChannelType.SLACK
    config: SlackConfig

    def build_payload(self, event: AlertEvent) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "username": self.config.username or self.username,
            "attachments": [
                {
                    "color": color_for(event),
                    "title": headline(event),
                    "text": body_text(event),
                    "fields": [
                        {"title": "Node", "value": event.node_name, "short": True},
                        {"title": "Current Value", "value": value_text(event), "short": True},
                        {"title": "Condition", "value": condition_text(event), "short": True},
                        {"title": "Time", "value": human_time(event_time(event)), "short": True},
                    ],
                    "footer": self.footer,
                    "ts": int(time.time()),
                }
            ],
        }
        if self.config.channel:
            payload["channel"] = self.config.channel
        return payload

    def send(self, event: AlertEvent) -> None:
        # Slack Incoming Webhooks répond 200 "ok"
        self._request("POST", self.config.webhook_url, self.build_payload(event), ok=(200,))
