# server/alerting/domain/policies.py

from __future__ import annotations
"""
Règles métier utilisées pour évaluer les règles d'alerte.

Fonctions principales :
    is_satisfied(value, condition, threshold)
        Compare une valeur mesurée à un seuil (above / below / equals / not_equals).
    cooldown_permitted(last_triggered, cooldown_minutes, now)
        Indique si un nouveau déclenchement est permis.

Les deux fonctions sont pures (aucune I/O) et totales : une entrée invalide
renvoie False plutôt que de lever.
"""

import math
import operator as op
from datetime import datetime, timedelta
from typing import Any, Callable

from alerting.core.utils.datetime import as_utc

# Tolérance des comparaisons d'égalité (bruit flottant des capteurs)
EQUALS_EPSILON = 0.01


def _close(left: float, right: float) -> bool:
    return abs(left - right) < EQUALS_EPSILON


def _not_close(left: float, right: float) -> bool:
    return abs(left - right) >= EQUALS_EPSILON


OPS: dict[str, Callable[[float, float], bool]] = {
    "above": op.gt,
    "below": op.lt,
    "equals": _close,
    "not_equals": _not_close,
}

# Alias acceptés en entrée (API historique, saisie manuelle)
_ALIASES = {
    "not-equals": "not_equals",
    "notequals": "not_equals",
    "gt": "above",
    "lt": "below",
    "eq": "equals",
    "ne": "not_equals",
}


def normalize_condition(condition: Any) -> str:
    """Normalise la condition : trim + lower + alias. Renvoie '' si vide."""
    raw = getattr(condition, "value", condition)
    cond = (raw or "").strip().lower() if isinstance(raw, str) else ""
    return _ALIASES.get(cond, cond)


def _finite(x: Any) -> float | None:
    if isinstance(x, bool):
        return None
    try:
        f = float(x)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def is_satisfied(value: Any, condition: Any, threshold: Any) -> bool:
    """
    True si `value` satisfait `condition` par rapport à `threshold`.

    - above      : value > threshold
    - below      : value < threshold
    - equals     : |value - threshold| < 0.01
    - not_equals : |value - threshold| >= 0.01

    NaN / ±inf (valeur ou seuil), valeur non numérique ou condition inconnue
    -> False : un capteur qui déraille ne doit jamais déclencher de tempête
    de notifications.
    """
    left = _finite(value)
    right = _finite(threshold)
    if left is None or right is None:
        return False
    fn = OPS.get(normalize_condition(condition))
    return bool(fn(left, right)) if fn else False


def cooldown_permitted(last_triggered: datetime | None, cooldown_minutes: int, now: datetime) -> bool:
    """
    True si aucun déclenchement précédent, ou si `cooldown_minutes` se sont
    écoulées depuis le dernier déclenchement (bornes incluses).

    Le cooldown part du dernier *déclenchement*, que l'instance associée ait
    été résolue/acquittée ou non.
    """
    if last_triggered is None:
        return True
    elapsed = as_utc(now) - as_utc(last_triggered)
    return elapsed >= timedelta(minutes=max(0, int(cooldown_minutes or 0)))
