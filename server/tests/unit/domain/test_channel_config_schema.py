# server/tests/unit/domain/test_channel_config_schema.py
import pytest

from alerting.domain.channel_config import (
    EmailConfig,
    PagerDutyConfig,
    SlackConfig,
    WebhookConfig,
    WebhookMethod,
    validate_channel_config,
)
from alerting.domain.errors import InvalidChannelConfig

pytestmark = pytest.mark.unit


def test_every_type_accepts_its_reference_config(channel_configs):
    for ctype, cfg in channel_configs.items():
        validate_channel_config(ctype, cfg)


def test_camel_case_aliases_are_mapped(channel_configs):
    slack = validate_channel_config("slack", channel_configs["slack"])
    assert isinstance(slack, SlackConfig)
    assert slack.webhook_url.startswith("https://hooks.slack.invalid")

    pd = validate_channel_config("PagerDuty", channel_configs["pagerduty"])
    assert isinstance(pd, PagerDutyConfig)
    assert pd.integration_key == "R0UT1NGKEY"

    email = validate_channel_config("email", channel_configs["email"])
    assert isinstance(email, EmailConfig)
    assert email.sender == "alerts@example.invalid"
    assert email.auth.password == "secret"


def test_webhook_method_defaults_and_case(channel_configs):
    wh = validate_channel_config("webhook", channel_configs["webhook"])
    assert isinstance(wh, WebhookConfig)
    assert wh.method is WebhookMethod.PUT
    assert validate_channel_config("webhook", {"url": "https://x.invalid"}).method is WebhookMethod.POST


@pytest.mark.parametrize(
    "ctype, config, fragment",
    [
        ("slack", {}, "webhookUrl"),
        ("slack", {"webhookUrl": "ftp://nope"}, "http"),
        ("webhook", {"url": "https://x.invalid", "method": "DELETE"}, "method"),
        ("email", {"host": "h", "from": "a@b.c", "to": []}, "to"),
        ("email", {"host": "h", "from": "a@b.c", "to": ["not-an-address"]}, "invalid recipient"),
        ("pagerduty", {"integrationKey": ""}, "integrationKey"),
        ("sms", {"accountSid": "AC1", "authToken": "t", "from": "+1555"}, "to"),
    ],
)
def test_invalid_configs_are_rejected(ctype, config, fragment):
    with pytest.raises(InvalidChannelConfig) as exc:
        validate_channel_config(ctype, config)
    assert exc.value.channel_type == ctype
    assert fragment in str(exc.value)


def test_unknown_type_and_non_dict_config():
    with pytest.raises(InvalidChannelConfig, match="unknown channel type"):
        validate_channel_config("carrier-pigeon", {})
    with pytest.raises(InvalidChannelConfig, match="JSON object"):
        validate_channel_config("slack", '{"webhookUrl": "https://x"}')
