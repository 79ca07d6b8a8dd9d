from __future__ import annotations
"""server/alerting/domain/errors.py
~~~~~~~~~~~~~~~~~~~~~~~~
Exceptions métier du moteur d'alerting.
"""


class AlertingError(Exception):
    """Base de toutes les erreurs du moteur."""


class InvalidRuleError(AlertingError):
    """Règle refusée avant persistance (condition, sévérité, cooldown...)."""


class InvalidChannelConfig(AlertingError):
    """Config de canal non conforme au schéma de son type."""

    def __init__(self, channel_type: str, detail: str):
        super().__init__(f"invalid {channel_type} channel config: {detail}")
        self.channel_type = channel_type
        self.detail = detail


class DeliveryError(AlertingError):
    """Échec d'envoi sur un canal (HTTP non-ok, SMTP, provider SMS...)."""


class ActiveInstanceExists(AlertingError):
    """Une instance non résolue existe déjà pour cette règle (garde-fou d'unicité)."""

    def __init__(self, rule_id: int):
        super().__init__(f"rule {rule_id} already has an unresolved instance")
        self.rule_id = rule_id


class InstanceNotFound(AlertingError):
    def __init__(self, instance_id: int):
        super().__init__(f"alert instance {instance_id} not found")
        self.instance_id = instance_id


class ChannelNotFound(AlertingError):
    def __init__(self, channel_id: int):
        super().__init__(f"notification channel {channel_id} not found")
        self.channel_id = channel_id


class MetricUnavailable(AlertingError):
    """Valeur de métrique indisponible (nœud injoignable, timeout, réponse invalide)."""
