from __future__ import annotations
"""server/alerting/infrastructure/persistence/repositories/channel_repository.py
~~~~~~~~~~~~~~~~~~~~~~~~
Repo notification_channels.
"""
import datetime as dt
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from alerting.infrastructure.persistence.database.models.notification_channel import NotificationChannel


class NotificationChannelRepository:
    def __init__(self, session: Session):
        self.s = session

    def get(self, channel_id: int) -> Optional[NotificationChannel]:
        return self.s.get(NotificationChannel, channel_id)

    def list_enabled(self) -> list[NotificationChannel]:
        q = select(NotificationChannel).where(NotificationChannel.enabled == True).order_by(NotificationChannel.id)  # noqa: E712
        return list(self.s.scalars(q).all())

    def add(self, *, name: str, type: str, config: dict[str, Any], enabled: bool = True) -> NotificationChannel:
        now = dt.datetime.now(dt.timezone.utc)
        ch = NotificationChannel(
            name=name, type=type, config=config, enabled=enabled,
            success_count=0, failure_count=0, created_at=now, updated_at=now,
        )
        self.s.add(ch)
        self.s.flush()
        return ch

    def bump_counter(self, channel_id: int, *, success: bool) -> int:
        # UPDATE atomique côté SQL : plusieurs threads d'envoi peuvent incrémenter en parallèle
        col = NotificationChannel.success_count if success else NotificationChannel.failure_count
        res = self.s.execute(
            update(NotificationChannel)
            .where(NotificationChannel.id == channel_id)
            .values({col: col + 1, NotificationChannel.updated_at: dt.datetime.now(dt.timezone.utc)})
        )
        return res.rowcount or 0

    def set_test_result(self, channel_id: int, *, success: bool, at: dt.datetime) -> int:
        res = self.s.execute(
            update(NotificationChannel)
            .where(NotificationChannel.id == channel_id)
            .values(test_status="success" if success else "failed", last_test_at=at)
        )
        return res.rowcount or 0

    def update(
        self,
        ch: NotificationChannel,
        *,
        name: Optional[str] = None,
        config: Optional[dict[str, Any]] = None,
        enabled: Optional[bool] = None,
    ) -> NotificationChannel:
        if name is not None:
            ch.name = name
        if config is not None:
            ch.config = config
        if enabled is not None:
            ch.enabled = enabled
        ch.updated_at = dt.datetime.now(dt.timezone.utc)
        self.s.flush()
        return ch
