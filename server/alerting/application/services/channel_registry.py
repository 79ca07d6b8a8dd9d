from __future__ import annotations
"""server/alerting/application/services/channel_registry.py
~~~~~~~~~~~~~~~~~~~~~~~~
Registre des canaux actifs : channel_id -> (canal, provider).

- `refresh()` relit les canaux activés, valide leur config et construit le
  provider de chacun ; la table est reconstruite entièrement puis échangée
  sous verrou (les lecteurs ne voient jamais un état partiel).
- Un canal dont la config ne valide plus est écarté avec un warning.
- Si la lecture du store échoue, l'ancienne table est conservée.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from alerting.domain.channel_config import validate_channel_config
from alerting.domain.entities import ChannelType, NotificationChannel
from alerting.domain.errors import InvalidChannelConfig
from alerting.domain.ports import ChannelStore, NotificationProvider
from alerting.infrastructure.notifications.providers.base import BaseProvider
from alerting.infrastructure.notifications.providers.discord_provider import DiscordProvider
from alerting.infrastructure.notifications.providers.email_provider import EmailProvider
from alerting.infrastructure.notifications.providers.pagerduty_provider import PagerDutyProvider
from alerting.infrastructure.notifications.providers.slack_provider import SlackProvider
from alerting.infrastructure.notifications.providers.sms_provider import SmsProvider
from alerting.infrastructure.notifications.providers.teams_provider import TeamsProvider
from alerting.infrastructure.notifications.providers.webhook_provider import WebhookProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[ChannelType, type[BaseProvider]] = {
    ChannelType.EMAIL: EmailProvider,
    ChannelType.SLACK: SlackProvider,
    ChannelType.DISCORD: DiscordProvider,
    ChannelType.TEAMS: TeamsProvider,
    ChannelType.WEBHOOK: WebhookProvider,
    ChannelType.PAGERDUTY: PagerDutyProvider,
    ChannelType.SMS: SmsProvider,
}

ProviderFactory = Callable[[NotificationChannel], NotificationProvider]


@dataclass(frozen=True)
class RegisteredChannel:
    channel: NotificationChannel
    provider: NotificationProvider


def default_provider_factory(
    *,
    timeout: float = 5.0,
    username: str = "Fleet Alerts",
    footer: str = "Fleet Alerting",
    pagerduty_url: Optional[str] = None,
) -> ProviderFactory:
    """Fabrique : config validée -> instance du provider du type."""

    def build(channel: NotificationChannel) -> NotificationProvider:
        config = validate_channel_config(channel.type, channel.config)
        ctype = ChannelType(channel.type)
        kwargs: dict = dict(timeout=timeout, username=username, footer=footer)
        if ctype is ChannelType.PAGERDUTY and pagerduty_url:
            kwargs["events_url"] = pagerduty_url
        return PROVIDER_CLASSES[ctype](config, **kwargs)

    return build


class ChannelRegistry:
    def __init__(self, store: ChannelStore, provider_factory: Optional[ProviderFactory] = None):
        self.store = store
        self.provider_factory = provider_factory or default_provider_factory()
        self._lock = threading.Lock()
        self._entries: dict[int, RegisteredChannel] = {}
        self._loaded_at: Optional[float] = None

    def refresh(self) -> int:
        """Recharge les canaux activés. Renvoie le nombre de canaux enregistrés."""
        channels = self.store.list_enabled_channels()

        entries: dict[int, RegisteredChannel] = {}
        for ch in channels:
            try:
                provider = self.provider_factory(ch)
            except InvalidChannelConfig as exc:
                logger.warning(
                    "channel skipped: invalid config",
                    extra={"channel_id": ch.id, "type": ch.type, "error": exc.detail},
                )
                continue
            entries[ch.id] = RegisteredChannel(channel=ch, provider=provider)

        with self._lock:
            self._entries = entries
            self._loaded_at = time.monotonic()

        logger.info("channel registry refreshed", extra={"channels": len(entries), "skipped": len(channels) - len(entries)})
        return len(entries)

    def get(self, channel_id: int) -> Optional[RegisteredChannel]:
        with self._lock:
            return self._entries.get(channel_id)

    def channel_ids(self) -> list[int]:
        with self._lock:
            return sorted(self._entries)

    def age_seconds(self) -> Optional[float]:
        with self._lock:
            loaded = self._loaded_at
        return None if loaded is None else time.monotonic() - loaded

    def is_stale(self, max_age_seconds: float) -> bool:
        age = self.age_seconds()
        return age is None or age >= max_age_seconds

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
