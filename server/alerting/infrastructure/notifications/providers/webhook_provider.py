from __future__ import annotations
"""server/alerting/infrastructure/notifications/providers/webhook_provider.py
~~~~~~~~~~~~~~~~~~~~~~~~
WebhookProvider: webhook HTTP générique (méthode + en-têtes configurables).

Enveloppe JSON :
    {"event": ..., "alert": {...}, "trigger": {...}, "node": {"id", "name"}}
"""

from typing import Any

from alerting.domain.channel_config import WebhookConfig
from alerting.domain.entities import AlertEvent, ChannelType
from alerting.infrastructure.notifications.providers.base import BaseProvider, body_text, iso_time


class WebhookProvider(BaseProvider):
    channel_type = ChannelType.WEBHOOK
    config: WebhookConfig

    def build_payload(self, event: AlertEvent) -> dict[str, Any]:
        rule, inst = event.rule, event.instance
        return {
            "event": event.kind.value,
            "alert": {
                "id": rule.id,
                "name": rule.display_name,
                "metric": rule.metric,
                "condition": rule.condition,
                "threshold": rule.threshold,
                "severity": rule.severity,
            },
            "trigger": {
                "id": inst.id,
                "value": event.current_value,
                "message": body_text(event),
                "triggeredAt": iso_time(inst.triggered_at),
                "resolved": inst.resolved,
                "resolvedAt": iso_time(inst.resolved_at),
            },
            "node": {"id": rule.node_id, "name": event.node_name},
        }

    def send(self, event: AlertEvent) -> None:
        self._request(
            self.config.method.value,
            self.config.url,
            self.build_payload(event),
            headers=self.config.headers,
        )
