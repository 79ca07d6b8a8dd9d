from __future__ import annotations
"""server/alerting/infrastructure/notifications/providers/base.py
~~~~~~~~~~~~~~~~~~~~~~~~
Socle commun des providers : palette de sévérité, titres, envoi HTTP JSON.

Contrat : `send(event)` ne renvoie rien et lève DeliveryError en cas d'échec.
"""

import datetime as dt
from typing import Any, Iterable, Optional

import requests

from alerting.core.utils.datetime import as_utc
from alerting.domain.entities import AlertEvent, ChannelType
from alerting.domain.errors import DeliveryError
from alerting.domain.formatting import format_value, metric_label, resolution_message

SEVERITY_COLORS = {
    "critical": "#dc2626",
    "warning": "#f59e0b",
    "info": "#3b82f6",
}
RESOLVED_COLOR = "#36a64f"


def color_for(event: AlertEvent) -> str:
    if event.is_resolution:
        return RESOLVED_COLOR
    return SEVERITY_COLORS.get((event.rule.severity or "").lower(), SEVERITY_COLORS["info"])


def tag(event: AlertEvent) -> str:
    """RESOLVED / TEST / sévérité en majuscules."""
    if event.is_resolution:
        return "RESOLVED"
    if event.is_test:
        return "TEST"
    return (event.rule.severity or "info").upper()


def headline(event: AlertEvent) -> str:
    label = metric_label(event.rule.metric)
    if event.is_resolution:
        return f"RESOLVED: {label}"
    return f"{tag(event)} Alert: {label}"


def body_text(event: AlertEvent) -> str:
    if event.is_resolution:
        return resolution_message(event.rule.metric, event.node_name, event.current_value)
    return event.instance.message


def condition_text(event: AlertEvent) -> str:
    return f"{event.rule.condition} {format_value(event.rule.metric, event.rule.threshold)}"


def value_text(event: AlertEvent) -> str:
    return format_value(event.rule.metric, event.current_value)


def event_time(event: AlertEvent) -> dt.datetime:
    if event.is_resolution and event.instance.resolved_at is not None:
        return as_utc(event.instance.resolved_at)
    return as_utc(event.instance.triggered_at)


def human_time(d: Optional[dt.datetime]) -> str:
    d = as_utc(d)
    return d.strftime("%Y-%m-%d %H:%M:%S UTC") if d else ""


def iso_time(d: Optional[dt.datetime]) -> Optional[str]:
    d = as_utc(d)
    return d.isoformat().replace("+00:00", "Z") if d else None


class BaseProvider:
    channel_type: ChannelType

    def __init__(
        self,
        config: Any,
        *,
        timeout: float = 5.0,
        username: str = "Fleet Alerts",
        footer: str = "Fleet Alerting",
    ):
        self.config = config
        self.timeout = timeout
        self.username = username
        self.footer = footer

    def send(self, event: AlertEvent) -> None:
        raise NotImplementedError

    def _request(
        self,
        method: str,
        url: str,
        payload: Any,
        *,
        ok: Iterable[int] | None = None,
        headers: Optional[dict[str, str]] = None,
    ) -> requests.Response:
        """
        Envoie `payload` en JSON. Succès : statut dans `ok` (par défaut 2xx).
        Toute erreur réseau ou statut inattendu -> DeliveryError.
        """
        hdrs = {"Content-Type": "application/json"}
        hdrs.update(headers or {})
        try:
            if method.upper() == "POST":
                r = requests.post(url, json=payload, headers=hdrs, timeout=self.timeout)
            else:
                r = requests.request(method.upper(), url, json=payload, headers=hdrs, timeout=self.timeout)
        except requests.RequestException as exc:
            raise DeliveryError(f"{self.channel_type.value}: {exc}") from exc

        accepted = set(ok) if ok is not None else None
        status = r.status_code
        if (accepted is not None and status not in accepted) or (accepted is None and not 200 <= status < 300):
            raise DeliveryError(f"{self.channel_type.value}: unexpected HTTP {status}")
        return r
