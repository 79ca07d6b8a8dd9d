# coding: utf-8
# server/alerting/core/utils/datetime.py
"""server/alerting/core/utils/datetime.py
~~~~~~~~~~~~~~~~~~~~~~~~
Utilitaires pour la gestion des dates et heures.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(d: Optional[datetime]) -> Optional[datetime]:
    """Retourne d en timezone UTC 'aware' (tolère None ; un datetime naïf est supposé UTC)."""
    if d is None:
        return None
    if d.tzinfo is None:
        return d.replace(tzinfo=timezone.utc)
    return d.astimezone(timezone.utc)
