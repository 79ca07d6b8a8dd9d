from __future__ import annotations
"""server/alerting/infrastructure/persistence/repositories/rule_repository.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Repository des règles d'alerte et de leurs liaisons aux canaux.

Principes (identiques à tous les repos) :
- reçoit une Session gérée par l'appelant ;
- ne crée ni ne ferme la session, et ne commit pas.
"""

import datetime as dt
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from alerting.infrastructure.persistence.database.models.alert_rule import AlertRule
from alerting.infrastructure.persistence.database.models.alert_rule_channel import AlertRuleChannel


class AlertRuleRepository:
    def __init__(self, session: Session):
        self.s = session

    def get(self, rule_id: int) -> Optional[AlertRule]:
        return self.s.get(AlertRule, rule_id)

    def list_enabled(self) -> list[AlertRule]:
        q = select(AlertRule).where(AlertRule.enabled == True).order_by(AlertRule.id)  # noqa: E712
        return list(self.s.scalars(q).all())

    def add(self, **fields) -> AlertRule:
        now = dt.datetime.now(dt.timezone.utc)
        rule = AlertRule(created_at=now, updated_at=now, **fields)
        self.s.add(rule)
        self.s.flush()
        return rule

    def mark_triggered(self, rule_id: int, ts: dt.datetime, *, bump: bool = True) -> Optional[AlertRule]:
        """last_triggered = ts (+ trigger_count += 1 si bump). Renvoie None si la règle n'existe plus."""
        rule = self.s.get(AlertRule, rule_id)
        if rule is None:
            return None
        rule.last_triggered = ts
        if bump:
            rule.trigger_count = (rule.trigger_count or 0) + 1
        rule.updated_at = dt.datetime.now(dt.timezone.utc)
        self.s.flush()
        return rule

    # ---------------------------------------------------------------- liaisons
    def channel_ids(self, rule_id: int) -> list[int]:
        q = (
            select(AlertRuleChannel.channel_id)
            .where(AlertRuleChannel.rule_id == rule_id)
            .order_by(AlertRuleChannel.channel_id)
        )
        return list(self.s.scalars(q).all())

    def link(self, rule_id: int, channel_id: int) -> bool:
        """Idempotent : renvoie True ssi une nouvelle liaison a été créée."""
        if self.s.get(AlertRuleChannel, (rule_id, channel_id)) is not None:
            return False
        self.s.add(AlertRuleChannel(rule_id=rule_id, channel_id=channel_id))
        self.s.flush()
        return True

    def unlink(self, rule_id: int, channel_id: int) -> int:
        res = self.s.execute(
            delete(AlertRuleChannel).where(
                AlertRuleChannel.rule_id == rule_id,
                AlertRuleChannel.channel_id == channel_id,
            )
        )
        return res.rowcount or 0
