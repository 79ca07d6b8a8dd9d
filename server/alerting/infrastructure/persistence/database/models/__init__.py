from __future__ import annotations
"""server/alerting/infrastructure/persistence/database/models/__init__.py
~~~~~~~~~~~~~~~~~~~~~~~~
Modèles ORM (enregistrés dans Base.metadata).
"""

from .node import Node
from .alert_rule import AlertRule
from .notification_channel import NotificationChannel
from .alert_rule_channel import AlertRuleChannel
from .alert_instance import AlertInstance
from .notification_attempt import NotificationAttempt

__all__ = ["Node", "AlertRule", "NotificationChannel", "AlertRuleChannel", "AlertInstance", "NotificationAttempt"]
