from __future__ import annotations
"""server/alerting/infrastructure/persistence/database/models/node.py
~~~~~~~~~~~~~~~~~~~~~~~~
Table nodes (annuaire des agents : URL + clé API + nom d'affichage).
"""
import datetime as dt

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from alerting.infrastructure.persistence.database.base import Base


class Node(Base):
    __tablename__ = "nodes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    url: Mapped[str] = mapped_column(String(1024))
    api_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=lambda: dt.datetime.now(dt.timezone.utc))
