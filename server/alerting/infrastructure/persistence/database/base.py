from __future__ import annotations
"""
server/alerting/infrastructure/persistence/database/base.py

Base ORM SQLAlchemy 2.x.

L'import `from alerting.infrastructure.persistence.database.models import *`
en fin de module enregistre toutes les tables dans Base.metadata : un
`Base.metadata.create_all(bind=engine)` (init_db, tests SQLite) crée ainsi le
schéma complet.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base declarative pour tous les modèles."""
    pass


# Effet de bord voulu : enregistre toutes les tables.
from alerting.infrastructure.persistence.database.models import *  # noqa: F403,F401,E402

__all__ = ["Base"]
