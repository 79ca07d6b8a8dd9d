from __future__ import annotations
"""server/alerting/domain/ports.py
~~~~~~~~~~~~~~~~~~~~~~~~
Contrats (Protocol) entre le moteur et ses collaborateurs.

L'évaluateur et le dispatcher ne dépendent que de ces interfaces ; les
implémentations SQL / HTTP vivent dans `alerting.infrastructure`, les tests
injectent des fakes en mémoire.
"""

import datetime as dt
from typing import Any, Optional, Protocol, Sequence

from alerting.domain.entities import (
    AlertEvent,
    AlertInstance,
    AlertRule,
    NotificationAttempt,
    NotificationChannel,
)


class MetricsProvider(Protocol):
    def get_value(self, node_id: int, metric: str, window_minutes: int) -> Optional[float]:
        """Dernière valeur agrégée, ou None si indisponible (jamais d'exception)."""
        ...


class NodeDirectory(Protocol):
    def display_name(self, node_id: int) -> str: ...


class RuleStore(Protocol):
    def list_enabled_rules(self) -> list[AlertRule]: ...

    def update_last_triggered(self, rule_id: int, ts: dt.datetime) -> None: ...

    def linked_channel_ids(self, rule_id: int) -> list[int]: ...


class AlertHistoryStore(Protocol):
    def find_unresolved(self, rule_id: int) -> Optional[AlertInstance]: ...

    def create_instance(
        self,
        rule: AlertRule,
        *,
        value: float,
        message: str,
        triggered_at: dt.datetime,
    ) -> AlertInstance:
        """
        Crée l'instance ET met à jour last_triggered / trigger_count de la règle
        dans la même transaction. Lève ActiveInstanceExists si une instance
        non résolue existe déjà.
        """
        ...

    def resolve_instance(
        self, instance_id: int, automatic: bool, at: Optional[dt.datetime] = None
    ) -> AlertInstance:
        """Marque l'instance résolue ; `at` (défaut : maintenant) devient resolved_at."""
        ...

    def acknowledge_instance(
        self, instance_id: int, user_id: int, note: Optional[str] = None
    ) -> AlertInstance: ...


class ChannelStore(Protocol):
    def list_enabled_channels(self) -> list[NotificationChannel]: ...

    def get_channel(self, channel_id: int) -> Optional[NotificationChannel]: ...

    def create_channel(
        self, *, name: str, type: str, config: dict[str, Any], enabled: bool = True
    ) -> NotificationChannel: ...

    def update_channel(
        self,
        channel_id: int,
        *,
        name: Optional[str] = None,
        config: Optional[dict[str, Any]] = None,
        enabled: Optional[bool] = None,
    ) -> NotificationChannel: ...

    def record_outcome(self, channel_id: int, success: bool) -> None: ...

    def record_test(self, channel_id: int, success: bool, at: dt.datetime) -> None: ...


class NotificationAttemptLog(Protocol):
    def record(self, attempt: NotificationAttempt) -> NotificationAttempt: ...


class NotificationProvider(Protocol):
    """Adaptateur d'un canal : lève DeliveryError (ou autre) en cas d'échec."""

    def send(self, event: AlertEvent) -> None: ...


class Dispatcher(Protocol):
    def dispatch(self, event: AlertEvent, channel_ids: Sequence[int]) -> list[NotificationAttempt]: ...
