from __future__ import annotations
"""
server/alerting/infrastructure/persistence/stores.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Implémentations SQL des ports du moteur (RuleStore, AlertHistoryStore,
ChannelStore, NotificationAttemptLog, NodeDirectory).

Chaque opération ouvre SA session, fait une transaction courte (commit /
rollback) puis ferme : un acquittement concurrent d'une évaluation ne voit
jamais d'état intermédiaire. Les repositories restent sans commit ; c'est ici
que se fait la gestion transactionnelle.

Les lignes ORM sont converties en dataclasses du domaine avant de sortir.
"""

import datetime as dt
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from alerting.core.utils.datetime import as_utc, utcnow
from alerting.domain import entities as e
from alerting.domain.channel_config import validate_channel_config
from alerting.domain.errors import ActiveInstanceExists, ChannelNotFound, InstanceNotFound, InvalidRuleError
from alerting.domain.rule_schema import validate_rule
from alerting.infrastructure.persistence.database.models import (
    AlertInstance as AlertInstanceRow,
    AlertRule as AlertRuleRow,
    NotificationAttempt as NotificationAttemptRow,
    NotificationChannel as NotificationChannelRow,
    Node as NodeRow,
)
from alerting.infrastructure.persistence.repositories.alert_instance_repository import AlertInstanceRepository
from alerting.infrastructure.persistence.repositories.channel_repository import NotificationChannelRepository
from alerting.infrastructure.persistence.repositories.node_repository import NodeRepository
from alerting.infrastructure.persistence.repositories.notification_attempt_repository import (
    NotificationAttemptRepository,
)
from alerting.infrastructure.persistence.repositories.rule_repository import AlertRuleRepository

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────────────
# Conversions ORM -> domaine
# ──────────────────────────────────────────────────────────────────────────────
def to_rule(row: AlertRuleRow) -> e.AlertRule:
    return e.AlertRule(
        id=row.id,
        node_id=row.node_id,
        metric=row.metric,
        condition=row.condition,
        threshold=row.threshold,
        severity=row.severity,
        enabled=bool(row.enabled),
        cooldown_minutes=row.cooldown_minutes,
        last_triggered=as_utc(row.last_triggered),
        trigger_count=row.trigger_count or 0,
        name=row.name,
        description=row.description,
    )


def to_instance(row: AlertInstanceRow) -> e.AlertInstance:
    return e.AlertInstance(
        id=row.id,
        rule_id=row.rule_id,
        node_id=row.node_id,
        value=row.value,
        threshold=row.threshold,
        condition=row.condition,
        severity=row.severity,
        message=row.message or "",
        triggered_at=as_utc(row.triggered_at),
        title=row.title or "",
        acknowledged=bool(row.acknowledged),
        acknowledged_by=row.acknowledged_by,
        acknowledged_at=as_utc(row.acknowledged_at),
        acknowledge_note=row.acknowledge_note,
        resolved=bool(row.resolved),
        resolved_at=as_utc(row.resolved_at),
        resolved_automatically=bool(row.resolved_automatically),
    )


def to_channel(row: NotificationChannelRow) -> e.NotificationChannel:
    return e.NotificationChannel(
        id=row.id,
        name=row.name,
        type=row.type,
        config=dict(row.config or {}),
        enabled=bool(row.enabled),
        success_count=row.success_count or 0,
        failure_count=row.failure_count or 0,
        test_status=row.test_status,
        last_test_at=as_utc(row.last_test_at),
    )


def to_attempt(row: NotificationAttemptRow) -> e.NotificationAttempt:
    return e.NotificationAttempt(
        id=row.id,
        instance_id=row.instance_id,
        channel_id=row.channel_id,
        event=row.event,
        status=row.status,
        error_message=row.error_message,
        created_at=as_utc(row.created_at),
    )


class _SqlStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _tx(self, op: str, **ctx: Any) -> Iterator[Session]:
        """Une transaction courte : commit si OK, rollback + log sinon."""
        s = self._session_factory()
        try:
            yield s
            s.commit()
        except SQLAlchemyError:
            s.rollback()
            logger.exception("store operation failed", extra={"op": op, **ctx})
            raise
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    @contextmanager
    def _read(self) -> Iterator[Session]:
        s = self._session_factory()
        try:
            yield s
        finally:
            s.close()


# ──────────────────────────────────────────────────────────────────────────────
# Règles
# ──────────────────────────────────────────────────────────────────────────────
class SqlRuleStore(_SqlStore):
    def list_enabled_rules(self) -> list[e.AlertRule]:
        with self._read() as s:
            return [to_rule(r) for r in AlertRuleRepository(s).list_enabled()]

    def get_rule(self, rule_id: int) -> Optional[e.AlertRule]:
        with self._read() as s:
            row = AlertRuleRepository(s).get(rule_id)
            return to_rule(row) if row else None

    def create_rule(self, **fields: Any) -> e.AlertRule:
        """Valide puis insère. Lève InvalidRuleError si la règle est refusée."""
        data = validate_rule(fields)
        with self._tx("create_rule", node_id=data.node_id) as s:
            row = AlertRuleRepository(s).add(
                node_id=data.node_id,
                name=data.resolved_name(),
                description=data.description,
                metric=data.metric,
                condition=data.condition.value,
                threshold=data.threshold,
                severity=data.severity.value,
                enabled=data.enabled,
                cooldown_minutes=data.cooldown_minutes,
                trigger_count=0,
            )
            rule = to_rule(row)
        logger.info("alert rule created", extra={"rule_id": rule.id, "node_id": rule.node_id})
        return rule

    def update_last_triggered(self, rule_id: int, ts: dt.datetime) -> None:
        with self._tx("update_last_triggered", rule_id=rule_id) as s:
            if AlertRuleRepository(s).mark_triggered(rule_id, ts, bump=False) is None:
                raise InvalidRuleError(f"rule {rule_id} not found")

    def linked_channel_ids(self, rule_id: int) -> list[int]:
        with self._read() as s:
            return AlertRuleRepository(s).channel_ids(rule_id)

    def link_channel(self, rule_id: int, channel_id: int) -> bool:
        with self._tx("link_channel", rule_id=rule_id, channel_id=channel_id) as s:
            return AlertRuleRepository(s).link(rule_id, channel_id)

    def unlink_channel(self, rule_id: int, channel_id: int) -> bool:
        with self._tx("unlink_channel", rule_id=rule_id, channel_id=channel_id) as s:
            return AlertRuleRepository(s).unlink(rule_id, channel_id) > 0


# ──────────────────────────────────────────────────────────────────────────────
# Historique des instances
# ──────────────────────────────────────────────────────────────────────────────
class SqlAlertHistoryStore(_SqlStore):
    def find_unresolved(self, rule_id: int) -> Optional[e.AlertInstance]:
        with self._read() as s:
            row = AlertInstanceRepository(s).find_unresolved(rule_id)
            return to_instance(row) if row else None

    def get_instance(self, instance_id: int) -> Optional[e.AlertInstance]:
        with self._read() as s:
            row = AlertInstanceRepository(s).get(instance_id)
            return to_instance(row) if row else None

    def create_instance(
        self,
        rule: e.AlertRule,
        *,
        value: float,
        message: str,
        triggered_at: dt.datetime,
    ) -> e.AlertInstance:
        """
        Insère l'instance et met à jour last_triggered / trigger_count de la
        règle dans la même transaction.

        Lève ActiveInstanceExists si une instance non résolue existe déjà
        (lecture préalable ou violation de l'index unique partiel).
        """
        s = self._session_factory()
        try:
            instances = AlertInstanceRepository(s)
            if instances.find_unresolved(rule.id) is not None:
                raise ActiveInstanceExists(rule.id)
            row = instances.open(
                rule_id=rule.id,
                node_id=rule.node_id,
                title=rule.display_name,
                value=float(value),
                threshold=float(rule.threshold),
                condition=rule.condition,
                severity=rule.severity,
                message=message,
                triggered_at=triggered_at,
            )
            if AlertRuleRepository(s).mark_triggered(rule.id, triggered_at) is None:
                raise InvalidRuleError(f"rule {rule.id} not found")
            s.commit()
            return to_instance(row)
        except IntegrityError as exc:
            s.rollback()
            raise ActiveInstanceExists(rule.id) from exc
        except SQLAlchemyError:
            s.rollback()
            logger.exception("create_instance failed", extra={"rule_id": rule.id, "node_id": rule.node_id})
            raise
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    def resolve_instance(
        self, instance_id: int, automatic: bool, at: Optional[dt.datetime] = None
    ) -> e.AlertInstance:
        with self._tx("resolve_instance", instance_id=instance_id) as s:
            repo = AlertInstanceRepository(s)
            row = repo.get(instance_id)
            if row is None:
                raise InstanceNotFound(instance_id)
            return to_instance(repo.resolve(row, automatic=automatic, at=at or utcnow()))

    def acknowledge_instance(self, instance_id: int, user_id: int, note: Optional[str] = None) -> e.AlertInstance:
        with self._tx("acknowledge_instance", instance_id=instance_id) as s:
            repo = AlertInstanceRepository(s)
            row = repo.get(instance_id)
            if row is None:
                raise InstanceNotFound(instance_id)
            return to_instance(repo.acknowledge(row, user_id=user_id, note=note, at=utcnow()))

    def list_active(self) -> list[e.AlertInstance]:
        with self._read() as s:
            return [to_instance(r) for r in AlertInstanceRepository(s).list_active()]

    def list_recent(self, limit: int = 50) -> list[e.AlertInstance]:
        with self._read() as s:
            return [to_instance(r) for r in AlertInstanceRepository(s).list_recent(limit)]

    def list_between(self, start: dt.datetime, end: dt.datetime) -> list[e.AlertInstance]:
        with self._read() as s:
            return [to_instance(r) for r in AlertInstanceRepository(s).list_between(start, end)]


# ──────────────────────────────────────────────────────────────────────────────
# Canaux + journal des envois
# ──────────────────────────────────────────────────────────────────────────────
class SqlChannelStore(_SqlStore):
    def list_enabled_channels(self) -> list[e.NotificationChannel]:
        with self._read() as s:
            return [to_channel(r) for r in NotificationChannelRepository(s).list_enabled()]

    def get_channel(self, channel_id: int) -> Optional[e.NotificationChannel]:
        with self._read() as s:
            row = NotificationChannelRepository(s).get(channel_id)
            return to_channel(row) if row else None

    def create_channel(
        self, *, name: str, type: str, config: dict[str, Any], enabled: bool = True
    ) -> e.NotificationChannel:
        """Refuse (InvalidChannelConfig) toute config non conforme au schéma du type."""
        validate_channel_config(type, config)
        ctype = e.ChannelType(type.strip().lower())
        with self._tx("create_channel", channel_name=name) as s:
            row = NotificationChannelRepository(s).add(name=name, type=ctype.value, config=config, enabled=enabled)
            ch = to_channel(row)
        logger.info("notification channel created", extra={"channel_id": ch.id, "type": ch.type})
        return ch

    def update_channel(
        self,
        channel_id: int,
        *,
        name: Optional[str] = None,
        config: Optional[dict[str, Any]] = None,
        enabled: Optional[bool] = None,
    ) -> e.NotificationChannel:
        """Mise à jour partielle ; la nouvelle config est validée contre le type du canal."""
        with self._tx("update_channel", channel_id=channel_id) as s:
            repo = NotificationChannelRepository(s)
            row = repo.get(channel_id)
            if row is None:
                raise ChannelNotFound(channel_id)
            if config is not None:
                validate_channel_config(row.type, config)
            ch = to_channel(repo.update(row, name=name, config=config, enabled=enabled))
        logger.info("notification channel updated", extra={"channel_id": ch.id, "enabled": ch.enabled})
        return ch

    def record_outcome(self, channel_id: int, success: bool) -> None:
        with self._tx("record_outcome", channel_id=channel_id) as s:
            NotificationChannelRepository(s).bump_counter(channel_id, success=success)

    def record_test(self, channel_id: int, success: bool, at: dt.datetime) -> None:
        with self._tx("record_test", channel_id=channel_id) as s:
            NotificationChannelRepository(s).set_test_result(channel_id, success=success, at=at)


class SqlNotificationAttemptLog(_SqlStore):
    def record(self, attempt: e.NotificationAttempt) -> e.NotificationAttempt:
        with self._tx("record_attempt", channel_id=attempt.channel_id, instance_id=attempt.instance_id) as s:
            row = NotificationAttemptRepository(s).add(
                instance_id=attempt.instance_id,
                channel_id=attempt.channel_id,
                event=attempt.event,
                status=attempt.status,
                error_message=attempt.error_message,
            )
            return to_attempt(row)

    def list_failed(self, channel_id: Optional[int] = None, limit: int = 100) -> list[e.NotificationAttempt]:
        with self._read() as s:
            return [to_attempt(r) for r in NotificationAttemptRepository(s).list_failed(channel_id, limit)]

    def for_instance(self, instance_id: int) -> list[e.NotificationAttempt]:
        with self._read() as s:
            return [to_attempt(r) for r in NotificationAttemptRepository(s).for_instance(instance_id)]


# ──────────────────────────────────────────────────────────────────────────────
# Annuaire des nœuds
# ──────────────────────────────────────────────────────────────────────────────
class SqlNodeDirectory(_SqlStore):
    def add_node(self, *, name: str, url: str, api_key: Optional[str] = None, node_id: Optional[int] = None) -> int:
        with self._tx("add_node", node_name=name) as s:
            return NodeRepository(s).add(name=name, url=url, api_key=api_key, node_id=node_id).id

    def lookup(self, node_id: int) -> Optional[tuple[str, Optional[str]]]:
        """(url, api_key) de l'agent, ou None si le nœud est inconnu."""
        with self._read() as s:
            row: Optional[NodeRow] = NodeRepository(s).get(node_id)
            return (row.url, row.api_key) if row else None

    def display_name(self, node_id: int) -> str:
        try:
            with self._read() as s:
                row = NodeRepository(s).get(node_id)
                name = row.name if row else None
        except SQLAlchemyError:
            logger.warning("node lookup failed", extra={"node_id": node_id}, exc_info=True)
            name = None
        return name or f"node-{node_id}"
