# server/tests/unit/notifications/test_webhook_style_providers.py
from types import SimpleNamespace

import pytest
import requests

from alerting.domain.channel_config import validate_channel_config
from alerting.domain.errors import DeliveryError
from alerting.infrastructure.notifications.providers.discord_provider import DiscordProvider
from alerting.infrastructure.notifications.providers.pagerduty_provider import PagerDutyProvider
from alerting.infrastructure.notifications.providers.slack_provider import SlackProvider
from alerting.infrastructure.notifications.providers.teams_provider import TeamsProvider
from alerting.infrastructure.notifications.providers.webhook_provider import WebhookProvider

pytestmark = pytest.mark.unit


@pytest.fixture
def http_calls(monkeypatch):
    """Capture requests.post / requests.request ; statut réglable via `calls.status`."""
    calls = SimpleNamespace(items=[], status=200)

    def fake_post(url, json, headers, timeout):
        calls.items.append({"method": "POST", "url": url, "json": json, "headers": headers, "timeout": timeout})
        return SimpleNamespace(status_code=calls.status)

    def fake_request(method, url, json, headers, timeout):
        calls.items.append({"method": method, "url": url, "json": json, "headers": headers, "timeout": timeout})
        return SimpleNamespace(status_code=calls.status)

    monkeypatch.setattr("requests.post", fake_post, raising=True)
    monkeypatch.setattr("requests.request", fake_request, raising=True)
    return calls


def _provider(cls, ctype, channel_configs, **kw):
    return cls(validate_channel_config(ctype, channel_configs[ctype]), timeout=2.5, **kw)


def test_slack_payload_and_success(http_calls, channel_configs, alert_event):
    p = _provider(SlackProvider, "slack", channel_configs)
    p.send(alert_event("trigger", severity="warning"))

    call = http_calls.items[0]
    assert call["url"] == channel_configs["slack"]["webhookUrl"]
    assert call["timeout"] == 2.5
    body = call["json"]
    assert body["channel"] == "#ops"
    assert body["username"] == "bot"
    att = body["attachments"][0]
    assert att["color"] == "#f59e0b"
    assert att["title"] == "WARNING Alert: CPU Usage"
    assert att["text"].startswith("CPU Usage on web-42 is above threshold")
    fields = {f["title"]: f["value"] for f in att["fields"]}
    assert fields["Node"] == "web-42"
    assert fields["Current Value"] == "85.0%"
    assert fields["Condition"] == "above 80.0%"
    assert fields["Time"] == "2024-05-01 12:00:00 UTC"


def test_slack_resolution_is_green(http_calls, channel_configs, alert_event):
    _provider(SlackProvider, "slack", channel_configs).send(alert_event("resolve", value=42.0))
    att = http_calls.items[0]["json"]["attachments"][0]
    assert att["color"] == "#36a64f"
    assert att["title"] == "RESOLVED: CPU Usage"
    assert att["text"] == "CPU Usage on web-42 is back to normal: 42.0%"


def test_slack_non_200_is_a_delivery_error(http_calls, channel_configs, alert_event):
    http_calls.status = 500
    with pytest.raises(DeliveryError, match="HTTP 500"):
        _provider(SlackProvider, "slack", channel_configs).send(alert_event())


def test_network_errors_become_delivery_errors(monkeypatch, channel_configs, alert_event):
    def fake_post(*a, **k):
        raise requests.ConnectionError("net down")

    monkeypatch.setattr("requests.post", fake_post, raising=True)
    with pytest.raises(DeliveryError, match="net down"):
        _provider(SlackProvider, "slack", channel_configs).send(alert_event())


def test_discord_accepts_204_and_uses_int_colours(http_calls, channel_configs, alert_event):
    http_calls.status = 204
    p = _provider(DiscordProvider, "discord", channel_configs, username="Fleet Alerts")
    p.send(alert_event(severity="critical"))
    embed = http_calls.items[0]["json"]["embeds"][0]
    assert http_calls.items[0]["json"]["username"] == "Fleet Alerts"
    assert embed["color"] == 0xDC2626
    assert embed["timestamp"] == "2024-05-01T12:00:00Z"


def test_teams_message_card(http_calls, channel_configs, alert_event):
    p = _provider(TeamsProvider, "teams", channel_configs)
    p.send(alert_event(severity="critical"))
    card = http_calls.items[0]["json"]
    assert card["@type"] == "MessageCard"
    assert card["themeColor"] == "FF0000"
    facts = {f["name"]: f["value"] for f in card["sections"][0]["facts"]}
    assert facts["Metric"] == "CPU Usage"

    http_calls.items.clear()
    p.send(alert_event("resolve", value=10.0))
    assert http_calls.items[0]["json"]["themeColor"] == "008000"


def test_generic_webhook_envelope_method_and_headers(http_calls, channel_configs, alert_event):
    http_calls.status = 201
    _provider(WebhookProvider, "webhook", channel_configs).send(alert_event())
    call = http_calls.items[0]
    assert call["method"] == "PUT"
    assert call["headers"]["X-Token"] == "t0k"
    assert call["headers"]["Content-Type"] == "application/json"
    env = call["json"]
    assert env["event"] == "trigger"
    assert env["alert"] == {
        "id": 7, "name": "cpu_usage on node 42", "metric": "cpu_usage",
        "condition": "above", "threshold": 80.0, "severity": "critical",
    }
    assert env["trigger"]["value"] == 85.0
    assert env["trigger"]["triggeredAt"] == "2024-05-01T12:00:00Z"
    assert env["trigger"]["resolved"] is False
    assert env["node"] == {"id": 42, "name": "web-42"}


def test_generic_webhook_rejects_non_2xx(http_calls, channel_configs, alert_event):
    http_calls.status = 302
    with pytest.raises(DeliveryError):
        _provider(WebhookProvider, "webhook", channel_configs).send(alert_event())


def test_pagerduty_trigger_and_resolve_share_dedup_key(http_calls, channel_configs, alert_event):
    http_calls.status = 202
    p = _provider(PagerDutyProvider, "pagerduty", channel_configs, events_url="https://pd.invalid/v2/enqueue")

    p.send(alert_event("trigger"))
    p.send(alert_event("resolve", value=12.0))

    trig, res = (c["json"] for c in http_calls.items)
    assert http_calls.items[0]["url"] == "https://pd.invalid/v2/enqueue"
    assert trig["routing_key"] == "R0UT1NGKEY"
    assert trig["event_action"] == "trigger"
    assert trig["dedup_key"] == "7-99"
    assert trig["payload"]["severity"] == "critical"
    assert trig["payload"]["source"] == "web-42"
    assert res["event_action"] == "resolve"
    assert res["dedup_key"] == "7-99"
    assert "payload" not in res


def test_pagerduty_requires_202(http_calls, channel_configs, alert_event):
    http_calls.status = 200
    with pytest.raises(DeliveryError):
        _provider(PagerDutyProvider, "pagerduty", channel_configs).send(alert_event())
