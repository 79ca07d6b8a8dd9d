from __future__ import annotations
"""server/alerting/infrastructure/notifications/providers/teams_provider.py
~~~~~~~~~~~~~~~~~~~~~~~~
TeamsProvider: connecteur Microsoft Teams (MessageCard).
"""

from typing import Any

from alerting.domain.channel_config import TeamsConfig
from alerting.domain.entities import AlertEvent, ChannelType
from alerting.domain.formatting import metric_label
from alerting.infrastructure.notifications.providers.base import (
    BaseProvider,
    body_text,
    condition_text,
    event_time,
    headline,
    human_time,
    value_text,
)

THEME_COLORS = {
    "critical": "FF0000",
    "warning": "FFA500",
    "info": "0000FF",
}
RESOLVED_THEME = "008000"


class TeamsProvider(BaseProvider):
    channel_type = ChannelType.TEAMS
    config: TeamsConfig

    def build_payload(self, event: AlertEvent) -> dict[str, Any]:
        if event.is_resolution:
            theme = RESOLVED_THEME
        else:
            theme = THEME_COLORS.get((event.rule.severity or "").lower(), THEME_COLORS["info"])
        return {
            "@type": "MessageCard",
            "@context": "http://schema.org/extensions",
            "themeColor": theme,
            "summary": f"{headline(event)} on {event.node_name}",
            "sections": [
                {
                    "activityTitle": headline(event),
                    "activitySubtitle": f"On {event.node_name}",
                    "facts": [
                        {"name": "Metric", "value": metric_label(event.rule.metric)},
                        {"name": "Condition", "value": condition_text(event)},
                        {"name": "Current Value", "value": value_text(event)},
                        {"name": "Time", "value": human_time(event_time(event))},
                    ],
                    "markdown": True,
                    "text": body_text(event),
                }
            ],
        }

    def send(self, event: AlertEvent) -> None:
        self._request("POST", self.config.webhook_url, self.build_payload(event))
