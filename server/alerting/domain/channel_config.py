from __future__ import annotations
"""
server/alerting/domain/channel_config.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Pydantic schemas des configurations de canaux de notification.

- Un schéma par type de canal (email, slack, discord, teams, webhook, pagerduty, sms).
- Les clés JSON gardent la casse historique (camelCase : `webhookUrl`,
  `integrationKey`...) via des alias ; `populate_by_name` autorise aussi le
  nom Python.
- `validate_channel_config(type, config)` est le point d'entrée unique :
  appelé à la création d'un canal ET au chargement du registre.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from alerting.domain.entities import ChannelType
from alerting.domain.errors import InvalidChannelConfig


class _ChannelConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def _http_url(v: str) -> str:
    v = (v or "").strip()
    if not v.lower().startswith(("http://", "https://")):
        raise ValueError("URL must use http or https")
    return v


class SmtpAuth(_ChannelConfig):
    user: str = Field(..., min_length=1)
    password: str = Field(..., alias="pass")


class EmailConfig(_ChannelConfig):
    host: str = Field(..., min_length=1)
    port: int = Field(587, ge=1, le=65535)
    # secure=True -> TLS implicite (SMTPS, 465) ; sinon STARTTLS si proposé
    secure: bool = False
    auth: Optional[SmtpAuth] = None
    sender: str = Field(..., alias="from", min_length=3)
    to: list[str] = Field(..., min_length=1)

    @field_validator("to")
    @classmethod
    def validate_recipients(cls, v: list[str]) -> list[str]:
        cleaned = [r.strip() for r in v if r and r.strip()]
        if not cleaned:
            raise ValueError("at least one recipient is required")
        bad = [r for r in cleaned if "@" not in r]
        if bad:
            raise ValueError(f"invalid recipient(s): {', '.join(bad)}")
        return cleaned


class SlackConfig(_ChannelConfig):
    webhook_url: str = Field(..., alias="webhookUrl")
    channel: Optional[str] = None
    username: Optional[str] = None

    @field_validator("webhook_url")
    @classmethod
    def check_url(cls, v: str) -> str:
        return _http_url(v)


class DiscordConfig(_ChannelConfig):
    webhook_url: str = Field(..., alias="webhookUrl")
    username: Optional[str] = None

    @field_validator("webhook_url")
    @classmethod
    def check_url(cls, v: str) -> str:
        return _http_url(v)


class TeamsConfig(_ChannelConfig):
    webhook_url: str = Field(..., alias="webhookUrl")

    @field_validator("webhook_url")
    @classmethod
    def check_url(cls, v: str) -> str:
        return _http_url(v)


class WebhookMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"


class WebhookConfig(_ChannelConfig):
    url: str
    method: WebhookMethod = WebhookMethod.POST
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        return _http_url(v)

    @field_validator("method", mode="before")
    @classmethod
    def upper_method(cls, v: Any) -> Any:
        # "post" -> "POST"
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("headers", mode="before")
    @classmethod
    def headers_or_empty(cls, v: Any) -> Any:
        return {} if v is None else v


class PagerDutyConfig(_ChannelConfig):
    integration_key: str = Field(..., alias="integrationKey", min_length=1)
    service_id: str = Field(..., alias="serviceId", min_length=1)


class SmsConfig(_ChannelConfig):
    account_sid: str = Field(..., alias="accountSid", min_length=1)
    auth_token: str = Field(..., alias="authToken", min_length=1)
    sender: str = Field(..., alias="from", min_length=3)
    to: list[str] = Field(..., min_length=1)


CONFIG_SCHEMAS: dict[ChannelType, type[_ChannelConfig]] = {
    ChannelType.EMAIL: EmailConfig,
    ChannelType.SLACK: SlackConfig,
    ChannelType.DISCORD: DiscordConfig,
    ChannelType.TEAMS: TeamsConfig,
    ChannelType.WEBHOOK: WebhookConfig,
    ChannelType.PAGERDUTY: PagerDutyConfig,
    ChannelType.SMS: SmsConfig,
}


def validate_channel_config(channel_type: str, config: Any) -> _ChannelConfig:
    """
    Valide `config` contre le schéma de `channel_type`.

    Lève InvalidChannelConfig (type inconnu, config non-dict, champ manquant...).
    """
    try:
        ctype = ChannelType(str(getattr(channel_type, "value", channel_type)).strip().lower())
    except ValueError:
        raise InvalidChannelConfig(str(channel_type), "unknown channel type") from None

    if not isinstance(config, dict):
        raise InvalidChannelConfig(ctype.value, "config must be a JSON object")

    try:
        return CONFIG_SCHEMAS[ctype].model_validate(config)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}" for err in e.errors()
        )
        raise InvalidChannelConfig(ctype.value, details) from e
