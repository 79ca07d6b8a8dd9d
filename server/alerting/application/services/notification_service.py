from __future__ import annotations
"""server/alerting/application/services/notification_service.py
~~~~~~~~~~~~~~~~~~~~~~~~
Diffusion d'un évènement (trigger / resolve / test) vers les canaux liés.

- chaque canal est appelé indépendamment, en parallèle (pool borné) ;
- toute exception d'un provider est capturée localement : une tentative
  "failed" est journalisée et les autres canaux ne sont pas affectés ;
- une tentative par (instance, canal, évènement), pas de retry ;
- un échec partiel n'est jamais remonté à l'évaluateur.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

from alerting.core.utils.datetime import utcnow
from alerting.domain.entities import (
    AlertEvent,
    AlertInstance,
    AlertRule,
    AttemptStatus,
    EventKind,
    NotificationAttempt,
)
from alerting.domain.errors import AlertingError, ChannelNotFound
from alerting.domain.ports import ChannelStore, NotificationAttemptLog, NotificationProvider
from alerting.application.services.channel_registry import ChannelRegistry

logger = logging.getLogger(__name__)


def _error_text(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def build_test_event(footer: str = "Fleet Alerting") -> AlertEvent:
    """Évènement synthétique utilisé par `test_channel`."""
    now = utcnow()
    rule = AlertRule(
        id=0,
        node_id=0,
        metric="cpu_usage",
        condition="above",
        threshold=80.0,
        severity="info",
        name="Test notification",
    )
    instance = AlertInstance(
        id=0,
        rule_id=0,
        node_id=0,
        value=85.0,
        threshold=80.0,
        condition="above",
        severity="info",
        message=f"This is a test notification from {footer}. If you can read this, the channel works.",
        triggered_at=now,
        title=rule.display_name,
    )
    return AlertEvent(kind=EventKind.TEST, rule=rule, instance=instance, node_name="test-node")


class NotificationDispatcher:
    def __init__(
        self,
        registry: ChannelRegistry,
        channels: ChannelStore,
        attempts: NotificationAttemptLog,
        *,
        max_workers: int = 4,
        footer: str = "Fleet Alerting",
    ):
        self.registry = registry
        self.channels = channels
        self.attempts = attempts
        self.max_workers = max(1, int(max_workers))
        self.footer = footer

    def dispatch(self, event: AlertEvent, channel_ids: Sequence[int]) -> list[NotificationAttempt]:
        """Envoie `event` à chaque canal lié présent dans le registre ; renvoie les tentatives."""
        targets = []
        for cid in dict.fromkeys(channel_ids):
            entry = self.registry.get(cid)
            if entry is None:
                logger.debug(
                    "linked channel not registered (disabled or invalid)",
                    extra={"channel_id": cid, "rule_id": event.rule.id},
                )
                continue
            targets.append(entry)

        if not targets:
            return []

        workers = min(self.max_workers, len(targets))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="notify") as pool:
            futures = [pool.submit(self._deliver, event, e.channel.id, e.provider) for e in targets]
            return [f.result() for f in futures]

    def _deliver(self, event: AlertEvent, channel_id: int, provider: NotificationProvider) -> NotificationAttempt:
        ctx = {
            "channel_id": channel_id,
            "rule_id": event.rule.id,
            "node_id": event.rule.node_id,
            "instance_id": event.instance.id,
            "event": event.kind.value,
        }
        error: Optional[str] = None
        try:
            provider.send(event)
        except Exception as exc:  # noqa: BLE001
            error = _error_text(exc)
            logger.warning("notification failed", extra={**ctx, "error": error})
        else:
            logger.info("notification sent", extra=ctx)

        attempt = NotificationAttempt(
            instance_id=None if event.is_test else event.instance.id,
            channel_id=channel_id,
            status=AttemptStatus.FAILED.value if error else AttemptStatus.SENT.value,
            event=event.kind.value,
            error_message=error,
            created_at=utcnow(),
        )
        try:
            attempt = self.attempts.record(attempt)
        except Exception:  # noqa: BLE001
            logger.exception("could not record notification attempt", extra=ctx)
        if not event.is_test:
            try:
                self.channels.record_outcome(channel_id, success=error is None)
            except Exception:  # noqa: BLE001
                logger.exception("could not update channel counters", extra=ctx)
        return attempt

    def test_channel(self, channel_id: int) -> NotificationAttempt:
        """
        Envoie un évènement de test à UN canal (même désactivé) et mémorise
        test_status / last_test_at. Lève ChannelNotFound si le canal n'existe pas.
        """
        entry = self.registry.get(channel_id)
        if entry is not None:
            provider_or_error: NotificationProvider | Exception = entry.provider
        else:
            channel = self.channels.get_channel(channel_id)
            if channel is None:
                raise ChannelNotFound(channel_id)
            try:
                provider_or_error = self.registry.provider_factory(channel)
            except AlertingError as exc:
                provider_or_error = exc

        event = build_test_event(self.footer)
        if isinstance(provider_or_error, Exception):
            attempt = NotificationAttempt(
                instance_id=None,
                channel_id=channel_id,
                status=AttemptStatus.FAILED.value,
                event=EventKind.TEST.value,
                error_message=_error_text(provider_or_error),
                created_at=utcnow(),
            )
            attempt = self.attempts.record(attempt)
        else:
            attempt = self._deliver(event, channel_id, provider_or_error)

        self.channels.record_test(channel_id, success=attempt.ok, at=attempt.created_at or utcnow())
        return attempt
