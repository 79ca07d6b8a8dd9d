# server/alerting/infrastructure/notifications/providers/email_provider.py
from __future__ import annotations

import html
import smtplib
import ssl
from email.message import EmailMessage

from alerting.domain.channel_config import EmailConfig
from alerting.domain.entities import AlertEvent, ChannelType
from alerting.domain.errors import DeliveryError
from alerting.domain.formatting import metric_label
from alerting.infrastructure.notifications.providers.base import (
    BaseProvider,
    body_text,
    color_for,
    condition_text,
    event_time,
    headline,
    human_time,
    tag,
    value_text,
)
from alerting.infrastructure.notifications.templates.loader import render_template


class EmailProvider(BaseProvider):
    """
    Envoi d'e-mails via SMTP (texte + HTML).

    - secure=True  -> SMTPS (TLS implicite, port 465 typiquement)
    - secure=False -> SMTP clair, STARTTLS si le serveur le propose
    - auth optionnelle (user / pass)
    """

    channel_type = ChannelType.EMAIL
    config: EmailConfig

    def subject(self, event: AlertEvent) -> str:
        return f"[{tag(event)}] Alert: {event.rule.metric} on {event.node_name}"

    def build_message(self, event: AlertEvent) -> EmailMessage:
        values = {
            "headline": headline(event),
            "severity": (event.rule.severity or "").upper(),
            "node": event.node_name,
            "metric": metric_label(event.rule.metric),
            "condition": condition_text(event),
            "value": value_text(event),
            "time_label": "Resolved At" if event.is_resolution else "Triggered At",
            "time": human_time(event_time(event)),
            "message": body_text(event),
            "footer": self.footer,
        }
        msg = EmailMessage()
        msg["Subject"] = self.subject(event)
        msg["From"] = self.config.sender
        msg["To"] = ", ".join(self.config.to)
        msg.set_content(render_template("email_alert.txt", **values))
        escaped = {k: html.escape(str(v)) for k, v in values.items()}
        msg.add_alternative(
            render_template("email_alert.html", color=color_for(event), **escaped),
            subtype="html",
        )
        return msg

    def _connect(self) -> smtplib.SMTP:
        cfg = self.config
        if cfg.secure:
            return smtplib.SMTP_SSL(cfg.host, cfg.port, timeout=self.timeout, context=ssl.create_default_context())
        server = smtplib.SMTP(cfg.host, cfg.port, timeout=self.timeout)
        server.ehlo()
        if server.has_extn("starttls"):
            server.starttls(context=ssl.create_default_context())
            server.ehlo()
        return server

    def send(self, event: AlertEvent) -> None:
        msg = self.build_message(event)
        try:
            server = self._connect()
            try:
                if self.config.auth is not None:
                    server.login(self.config.auth.user, self.config.auth.password)
                server.send_message(msg, from_addr=self.config.sender, to_addrs=list(self.config.to))
            finally:
                server.quit()
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"email: {exc}") from exc
