from __future__ import annotations
"""server/alerting/infrastructure/notifications/providers/pagerduty_provider.py
~~~~~~~~~~~~~~~~~~~~~~~~
PagerDutyProvider: Events API v2.

- dedup_key = "<rule id>-<instance id>" : la résolution ferme l'incident ouvert
  par le déclenchement correspondant.
- Succès ssi HTTP 202 (Accepted).
"""

from typing import Any

from alerting.domain.channel_config import PagerDutyConfig
from alerting.domain.entities import AlertEvent, ChannelType
from alerting.infrastructure.notifications.providers.base import BaseProvider, body_text, event_time, iso_time

DEFAULT_EVENTS_URL = "https://events.pagerduty.com/v2/enqueue"
_SEVERITIES = {"critical", "warning", "info"}


class PagerDutyProvider(BaseProvider):
    channel_type = ChannelType.PAGERDUTY
    config: PagerDutyConfig

    def __init__(self, config: PagerDutyConfig, *, events_url: str = DEFAULT_EVENTS_URL, **kw: Any):
        super().__init__(config, **kw)
        self.events_url = events_url

    @staticmethod
    def dedup_key(event: AlertEvent) -> str:
        return f"{event.rule.id}-{event.instance.id}"

    def build_payload(self, event: AlertEvent) -> dict[str, Any]:
        rule = event.rule
        body: dict[str, Any] = {
            "routing_key": self.config.integration_key,
            "event_action": "resolve" if event.is_resolution else "trigger",
            "dedup_key": self.dedup_key(event),
        }
        if event.is_resolution:
            return body
        severity = (rule.severity or "").lower()
        body["payload"] = {
            "summary": f"{rule.metric} {rule.condition} {rule.threshold:g} on {event.node_name}",
            "source": event.node_name,
            "severity": severity if severity in _SEVERITIES else "info",
            "timestamp": iso_time(event_time(event)),
            "custom_details": {
                "metric": rule.metric,
                "condition": rule.condition,
                "threshold": rule.threshold,
                "current_value": event.current_value,
                "message": body_text(event),
                "service_id": self.config.service_id,
            },
        }
        return body

    def send(self, event: AlertEvent) -> None:
        self._request("POST", self.events_url, self.build_payload(event), ok=(202,))
