from __future__ import annotations
"""server/alerting/domain/rule_schema.py
~~~~~~~~~~~~~~~~~~~~~~~~
Validation d'une règle avant persistance (pydantic v2).
"""

import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from alerting.domain.entities import Condition, Severity
from alerting.domain.errors import InvalidRuleError
from alerting.domain.formatting import METRIC_LABELS
from alerting.domain.policies import normalize_condition


class AlertRuleCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    node_id: int = Field(..., alias="nodeId", ge=1)
    metric: str = Field(..., min_length=1, max_length=64)
    condition: Condition
    threshold: float
    severity: Severity = Severity.WARNING
    enabled: bool = True
    cooldown_minutes: int = Field(5, alias="cooldownMinutes", ge=1)
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None

    @field_validator("metric")
    @classmethod
    def known_metric(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("metric must not be blank")
        if v not in METRIC_LABELS:
            raise ValueError(f"unknown metric '{v}' (known: {', '.join(sorted(METRIC_LABELS))})")
        return v

    @field_validator("condition", mode="before")
    @classmethod
    def normalize(cls, v: Any) -> Any:
        # "Above", "not-equals", "gt" -> valeurs canoniques
        return normalize_condition(v) or v

    @field_validator("severity", mode="before")
    @classmethod
    def lower_severity(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("threshold")
    @classmethod
    def finite_threshold(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("threshold must be a finite number")
        return v

    def resolved_name(self) -> str:
        return (self.name or "").strip() or f"{self.metric} on node {self.node_id}"


def validate_rule(data: dict[str, Any]) -> AlertRuleCreate:
    """Lève InvalidRuleError avec le détail des champs refusés."""
    try:
        return AlertRuleCreate.model_validate(data)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}" for err in e.errors()
        )
        raise InvalidRuleError(details) from e
