# server/tests/unit/conftest.py
# ─────────────────────────────────────────────────────────────────────────────
# Conftest pour les TESTS UNITAIRES.
#
# - `channel_configs` : une config valide par type de canal (format JSON
#   camelCase stocké en base), réutilisée par les tests de schéma et de
#   providers.
# - `alert_event` : fabrique d'AlertEvent sans base de données.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import copy
import datetime as dt

import pytest

_CONFIGS = {
    "slack": {"webhookUrl": "https://hooks.slack.invalid/T000/B000/XXX", "channel": "#ops", "username": "bot"},
    "discord": {"webhookUrl": "https://discord.invalid/api/webhooks/1/abc"},
    "teams": {"webhookUrl": "https://outlook.invalid/webhook/xyz"},
    "webhook": {"url": "https://hooks.example.invalid/alerts", "method": "put", "headers": {"X-Token": "t0k"}},
    "pagerduty": {"integrationKey": "R0UT1NGKEY", "serviceId": "PSERVICE"},
    "email": {
        "host": "smtp.example.invalid",
        "port": 587,
        "secure": False,
        "auth": {"user": "alerts", "pass": "secret"},
        "from": "alerts@example.invalid",
        "to": ["ops@example.invalid", "oncall@example.invalid"],
    },
    "sms": {"accountSid": "AC123", "authToken": "tok", "from": "+15550000000", "to": ["+15551112222", "+15553334444"]},
}


@pytest.fixture
def channel_configs() -> dict:
    return copy.deepcopy(_CONFIGS)


@pytest.fixture
def alert_event():
    """AlertEvent en mémoire : `alert_event(kind="resolve", severity="warning", value=42.0)`."""
    from alerting.domain.entities import AlertEvent, AlertInstance, AlertRule, EventKind

    def _make(kind: str = "trigger", *, severity: str = "critical", value: float | None = None, metric: str = "cpu_usage"):
        t0 = dt.datetime(2024, 5, 1, 12, 0, tzinfo=dt.timezone.utc)
        rule = AlertRule(
            id=7, node_id=42, metric=metric, condition="above", threshold=80.0,
            severity=severity, cooldown_minutes=5, last_triggered=t0, trigger_count=1,
        )
        resolved = kind == "resolve"
        inst = AlertInstance(
            id=99, rule_id=7, node_id=42, value=85.0, threshold=80.0, condition="above",
            severity=severity, triggered_at=t0,
            message="CPU Usage on web-42 is above threshold: 85.0% (threshold: above 80.0%)",
            resolved=resolved,
            resolved_at=t0 + dt.timedelta(minutes=2) if resolved else None,
            resolved_automatically=resolved,
        )
        return AlertEvent(kind=EventKind(kind), rule=rule, instance=inst, node_name="web-42", value=value)

    return _make
