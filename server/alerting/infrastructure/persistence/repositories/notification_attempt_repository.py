# server/alerting/infrastructure/persistence/repositories/notification_attempt_repository.py

from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from alerting.infrastructure.persistence.database.models.notification_attempt import NotificationAttempt


class NotificationAttemptRepository:
    """
    Repository pour la table notification_attempts.

    Principes :
    - Ne gère PAS les commit/rollback : c'est à la charge de l'appelant.
    - add(...) tronque les erreurs pour éviter les blobs énormes.
    - Table append-only : aucune méthode de mise à jour.
    """

    def __init__(self, db: Session):
        self.db = db

    def add(
        self,
        *,
        instance_id: Optional[int],
        channel_id: int,
        event: str,
        status: str,
        error_message: Optional[str] = None,
    ) -> NotificationAttempt:
        row = NotificationAttempt(
            instance_id=instance_id,
            channel_id=channel_id,
            event=event,
            status=status,
            error_message=(error_message[:10000] if error_message else None),
        )
        self.db.add(row)
        self.db.flush()
        return row

    def list_failed(self, channel_id: Optional[int] = None, limit: int = 100) -> list[NotificationAttempt]:
        stmt = select(NotificationAttempt).where(NotificationAttempt.status == "failed")
        if channel_id is not None:
            stmt = stmt.where(NotificationAttempt.channel_id == channel_id)
        stmt = stmt.order_by(NotificationAttempt.created_at.desc(), NotificationAttempt.id.desc()).limit(limit)
        return list(self.db.scalars(stmt).all())

    def for_instance(self, instance_id: int) -> list[NotificationAttempt]:
        stmt = (
            select(NotificationAttempt)
            .where(NotificationAttempt.instance_id == instance_id)
            .order_by(NotificationAttempt.id)
        )
        return list(self.db.scalars(stmt).all())
