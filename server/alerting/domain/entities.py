from __future__ import annotations
"""server/alerting/domain/entities.py
~~~~~~~~~~~~~~~~~~~~~~~~
Objets métier manipulés par le moteur (indépendants de l'ORM).

Les stores SQL convertissent leurs lignes en ces dataclasses : l'évaluateur
et le dispatcher ne voient jamais une Session SQLAlchemy.
"""

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Condition(str, Enum):
    ABOVE = "above"
    BELOW = "below"
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class ChannelType(str, Enum):
    EMAIL = "email"
    SLACK = "slack"
    DISCORD = "discord"
    WEBHOOK = "webhook"
    TEAMS = "teams"
    PAGERDUTY = "pagerduty"
    SMS = "sms"


class EventKind(str, Enum):
    TRIGGER = "trigger"
    RESOLVE = "resolve"
    TEST = "test"


class AttemptStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"


@dataclass
class AlertRule:
    id: int
    node_id: int
    metric: str
    condition: str
    threshold: float
    severity: str = Severity.WARNING.value
    enabled: bool = True
    cooldown_minutes: int = 5
    last_triggered: Optional[dt.datetime] = None
    trigger_count: int = 0
    name: Optional[str] = None
    description: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or f"{self.metric} on node {self.node_id}"


@dataclass
class AlertInstance:
    id: int
    rule_id: int
    node_id: int
    value: float
    threshold: float
    condition: str
    severity: str
    message: str
    triggered_at: dt.datetime
    title: str = ""
    acknowledged: bool = False
    acknowledged_by: Optional[int] = None
    acknowledged_at: Optional[dt.datetime] = None
    acknowledge_note: Optional[str] = None
    resolved: bool = False
    resolved_at: Optional[dt.datetime] = None
    resolved_automatically: bool = False


@dataclass
class NotificationChannel:
    id: int
    name: str
    type: str
    config: dict[str, Any] = field(default_factory=dict)
    enabled: bool = True
    success_count: int = 0
    failure_count: int = 0
    test_status: Optional[str] = None
    last_test_at: Optional[dt.datetime] = None


@dataclass
class NotificationAttempt:
    instance_id: Optional[int]
    channel_id: int
    status: str
    event: str = EventKind.TRIGGER.value
    error_message: Optional[str] = None
    created_at: Optional[dt.datetime] = None
    id: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status == AttemptStatus.SENT.value


@dataclass(frozen=True)
class AlertEvent:
    """Un évènement à diffuser : déclenchement, résolution ou test d'un canal."""
    kind: EventKind
    rule: AlertRule
    instance: AlertInstance
    node_name: str
    # valeur observée au moment de l'évènement (celle de la résolution pour un "resolve")
    value: Optional[float] = None

    @property
    def is_resolution(self) -> bool:
        return self.kind == EventKind.RESOLVE

    @property
    def is_test(self) -> bool:
        return self.kind == EventKind.TEST

    @property
    def current_value(self) -> float:
        return self.instance.value if self.value is None else self.value
