from __future__ import annotations
"""server/alerting/infrastructure/persistence/database/models/alert_rule_channel.py
~~~~~~~~~~~~~~~~~~~~~~~~
Table de liaison règle <-> canal.
"""
from sqlalchemy import ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from alerting.infrastructure.persistence.database.base import Base


class AlertRuleChannel(Base):
    __tablename__ = "alert_rule_channels"

    rule_id: Mapped[int] = mapped_column(Integer, ForeignKey("alert_rules.id", ondelete="CASCADE"), primary_key=True)
    channel_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("notification_channels.id", ondelete="CASCADE"), primary_key=True
    )
