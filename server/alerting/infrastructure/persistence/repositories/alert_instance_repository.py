from __future__ import annotations
"""server/alerting/infrastructure/persistence/repositories/alert_instance_repository.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Repository des instances d'alerte.

- `open(...)` insère une instance non résolue (flush immédiat : une violation
  de l'index unique partiel remonte ici sous forme d'IntegrityError).
- `resolve(...)` / `acknowledge(...)` ne touchent que leurs propres colonnes :
  acquitter ne résout pas, résoudre n'acquitte pas.
"""

import datetime as dt
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from alerting.infrastructure.persistence.database.models.alert_instance import AlertInstance


class AlertInstanceRepository:
    def __init__(self, session: Session):
        self.s = session

    def get(self, instance_id: int) -> Optional[AlertInstance]:
        return self.s.get(AlertInstance, instance_id)

    def find_unresolved(self, rule_id: int) -> Optional[AlertInstance]:
        q = (
            select(AlertInstance)
            .where(AlertInstance.rule_id == rule_id, AlertInstance.resolved == False)  # noqa: E712
            .order_by(AlertInstance.triggered_at.desc())
            .limit(1)
        )
        return self.s.execute(q).scalar_one_or_none()

    def open(
        self,
        *,
        rule_id: int,
        node_id: int,
        title: str,
        value: float,
        threshold: float,
        condition: str,
        severity: str,
        message: str,
        triggered_at: dt.datetime,
    ) -> AlertInstance:
        inst = AlertInstance(
            rule_id=rule_id,
            node_id=node_id,
            title=title,
            value=value,
            threshold=threshold,
            condition=condition,
            severity=severity,
            message=message,
            triggered_at=triggered_at,
            acknowledged=False,
            resolved=False,
            resolved_automatically=False,
        )
        self.s.add(inst)
        self.s.flush()
        return inst

    def resolve(self, inst: AlertInstance, *, automatic: bool, at: dt.datetime) -> AlertInstance:
        if not inst.resolved:
            inst.resolved = True
            inst.resolved_at = at
            inst.resolved_automatically = bool(automatic)
            self.s.flush()
        return inst

    def acknowledge(
        self, inst: AlertInstance, *, user_id: int, note: Optional[str], at: dt.datetime
    ) -> AlertInstance:
        inst.acknowledged = True
        inst.acknowledged_by = user_id
        inst.acknowledged_at = at
        inst.acknowledge_note = note
        self.s.flush()
        return inst

    def list_active(self) -> list[AlertInstance]:
        q = (
            select(AlertInstance)
            .where(AlertInstance.resolved == False)  # noqa: E712
            .order_by(AlertInstance.triggered_at.desc())
        )
        return list(self.s.scalars(q).all())

    def list_recent(self, limit: int = 50) -> list[AlertInstance]:
        q = select(AlertInstance).order_by(AlertInstance.triggered_at.desc(), AlertInstance.id.desc()).limit(limit)
        return list(self.s.scalars(q).all())

    def list_between(self, start: dt.datetime, end: dt.datetime) -> list[AlertInstance]:
        q = (
            select(AlertInstance)
            .where(AlertInstance.triggered_at >= start, AlertInstance.triggered_at <= end)
            .order_by(AlertInstance.triggered_at)
        )
        return list(self.s.scalars(q).all())
