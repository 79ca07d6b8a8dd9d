from __future__ import annotations
"""server/alerting/infrastructure/notifications/providers/discord_provider.py
~~~~~~~~~~~~~~~~~~~~~~~~
DiscordProvider: webhook Discord (embeds, couleurs entières).
"""

from typing import Any

from alerting.domain.channel_config import DiscordConfig
from alerting.domain.entities import AlertEvent, ChannelType
from alerting.infrastructure.notifications.providers.base import (
    BaseProvider,
    body_text,
    color_for,
    condition_text,
    event_time,
    headline,
    human_time,
    iso_time,
    value_text,
)


class DiscordProvider(BaseProvider):
    channel_type = ChannelType.DISCORD
    config: DiscordConfig

    def build_payload(self, event: AlertEvent) -> dict[str, Any]:
        at = event_time(event)
        return {
            "username": self.config.username or self.username,
            "embeds": [
                {
                    "title": headline(event),
                    "description": body_text(event),
                    "color": int(color_for(event).lstrip("#"), 16),
                    "fields": [
                        {"name": "Node", "value": event.node_name, "inline": True},
                        {"name": "Current Value", "value": value_text(event), "inline": True},
                        {"name": "Condition", "value": condition_text(event), "inline": True},
                        {"name": "Time", "value": human_time(at), "inline": False},
                    ],
                    "footer": {"text": self.footer},
                    "timestamp": iso_time(at),
                }
            ],
        }

    def send(self, event: AlertEvent) -> None:
        # 204 No Content par défaut, 200 si ?wait=true
        self._request("POST", self.config.webhook_url, self.build_payload(event), ok=(200, 204))
