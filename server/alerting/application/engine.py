from __future__ import annotations
"""server/alerting/application/engine.py
~~~~~~~~~~~~~~~~~~~~~~~~
Façade du moteur d'alerting (construite explicitement, pas de singleton).

    engine = build_engine(settings)
    engine.start()      # scheduler + premier passage immédiat
    ...
    engine.stop()

`AlertEngine` reçoit ses collaborateurs déjà construits (tests : fakes en
mémoire) ; `build_engine` câble les implémentations SQL / HTTP par défaut.
"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import sessionmaker

from alerting.application.services.channel_registry import ChannelRegistry, default_provider_factory
from alerting.application.services.evaluation_service import AlertEvaluator, TickReport
from alerting.application.services.notification_service import NotificationDispatcher
from alerting.core.config import Settings
from alerting.domain.entities import AlertInstance, NotificationAttempt, NotificationChannel
from alerting.domain.ports import AlertHistoryStore
from alerting.workers.scheduler import EvaluationScheduler

logger = logging.getLogger(__name__)


class AlertEngine:
    def __init__(
        self,
        evaluator: AlertEvaluator,
        dispatcher: NotificationDispatcher,
        registry: ChannelRegistry,
        history: AlertHistoryStore,
        *,
        interval_seconds: float = 30.0,
        channel_refresh_seconds: float = 300.0,
    ):
        self.evaluator = evaluator
        self.dispatcher = dispatcher
        self.registry = registry
        self.history = history
        self.channel_refresh_seconds = channel_refresh_seconds
        self.scheduler = EvaluationScheduler(
            self.evaluator.run_tick,
            interval_seconds=interval_seconds,
            refresh_channels=self.refresh_channels,
            channels_stale=lambda: self.registry.is_stale(self.channel_refresh_seconds),
        )

    # ------------------------------------------------------------ cycle de vie
    def start(self) -> bool:
        return self.scheduler.start()

    def stop(self) -> bool:
        return self.scheduler.stop()

    def is_running(self) -> bool:
        return self.scheduler.is_running()

    # -------------------------------------------------------------- opérations
    def run_once(self) -> TickReport:
        """Un passage synchrone (recharge le registre s'il n'a jamais été chargé)."""
        if self.registry.age_seconds() is None:
            self.refresh_channels()
        return self.evaluator.run_tick()

    def refresh_channels(self) -> int:
        return self.registry.refresh()

    def acknowledge(self, instance_id: int, user_id: int, note: Optional[str] = None) -> AlertInstance:
        """Acquitte une instance sans la résoudre (InstanceNotFound si inconnue)."""
        inst = self.history.acknowledge_instance(instance_id, user_id, note)
        logger.info("alert acknowledged", extra={"instance_id": instance_id, "user_id": user_id})
        return inst

    # ------------------------------------------------------------------ canaux
    # écriture en base puis rechargement du registre : le passage suivant voit
    # tout de suite le changement, sans attendre channel_refresh_seconds
    def create_channel(
        self, *, name: str, type: str, config: dict[str, Any], enabled: bool = True
    ) -> NotificationChannel:
        channel = self.registry.store.create_channel(name=name, type=type, config=config, enabled=enabled)
        self.refresh_channels()
        return channel

    def update_channel(
        self,
        channel_id: int,
        *,
        name: Optional[str] = None,
        config: Optional[dict[str, Any]] = None,
        enabled: Optional[bool] = None,
    ) -> NotificationChannel:
        """ChannelNotFound si le canal est inconnu, InvalidChannelConfig si la config est refusée."""
        channel = self.registry.store.update_channel(channel_id, name=name, config=config, enabled=enabled)
        self.refresh_channels()
        return channel

    def set_channel_enabled(self, channel_id: int, enabled: bool) -> NotificationChannel:
        return self.update_channel(channel_id, enabled=enabled)

    def test_channel(self, channel_id: int) -> NotificationAttempt:
        return self.dispatcher.test_channel(channel_id)


def build_engine(settings: Settings, session_factory: Optional[sessionmaker] = None) -> AlertEngine:
    """Câblage par défaut : stores SQL, agents HTTP, providers requests/smtplib/twilio."""
    from alerting.infrastructure.metrics.agent_provider import AgentMetricsProvider
    from alerting.infrastructure.persistence.database.session import build_engine as build_db_engine
    from alerting.infrastructure.persistence.database.session import make_sessionmaker
    from alerting.infrastructure.persistence.stores import (
        SqlAlertHistoryStore,
        SqlChannelStore,
        SqlNodeDirectory,
        SqlNotificationAttemptLog,
        SqlRuleStore,
    )

    if session_factory is None:
        session_factory = make_sessionmaker(build_db_engine(settings.DATABASE_URL, settings.DB_CONNECT_TIMEOUT))

    nodes = SqlNodeDirectory(session_factory)
    rules = SqlRuleStore(session_factory)
    history = SqlAlertHistoryStore(session_factory)
    channels = SqlChannelStore(session_factory)
    attempts = SqlNotificationAttemptLog(session_factory)

    registry = ChannelRegistry(
        channels,
        default_provider_factory(
            timeout=settings.NOTIFY_TIMEOUT_SECONDS,
            username=settings.NOTIFY_USERNAME,
            footer=settings.NOTIFY_FOOTER,
            pagerduty_url=settings.PAGERDUTY_EVENTS_URL,
        ),
    )
    dispatcher = NotificationDispatcher(
        registry,
        channels,
        attempts,
        max_workers=settings.DISPATCH_MAX_WORKERS,
        footer=settings.NOTIFY_FOOTER,
    )
    evaluator = AlertEvaluator(
        AgentMetricsProvider(nodes, timeout=settings.METRICS_TIMEOUT_SECONDS),
        rules,
        history,
        dispatcher,
        nodes,
        window_minutes=settings.METRIC_WINDOW_MINUTES,
        fetch_workers=settings.FETCH_MAX_WORKERS,
    )
    return AlertEngine(
        evaluator,
        dispatcher,
        registry,
        history,
        interval_seconds=settings.EVALUATION_INTERVAL_SECONDS,
        channel_refresh_seconds=settings.CHANNEL_REFRESH_SECONDS,
    )
