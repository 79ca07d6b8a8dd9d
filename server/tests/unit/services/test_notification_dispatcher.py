# server/tests/unit/services/test_notification_dispatcher.py
import datetime as dt

import pytest

from alerting.domain.entities import AlertEvent, EventKind
from alerting.domain.errors import AlertingError

pytestmark = pytest.mark.unit

T0 = dt.datetime(2024, 5, 1, 12, 0, tzinfo=dt.timezone.utc)


@pytest.fixture
def fired(make_rule, stores):
    """Règle + instance ouverte (les tentatives référencent une vraie instance)."""
    rule = make_rule()
    inst = stores.history.create_instance(rule, value=85.0, message="m", triggered_at=T0)
    return AlertEvent(kind=EventKind.TRIGGER, rule=rule, instance=inst, node_name="web-42", value=85.0)


def test_one_failing_channel_does_not_affect_the_others(build_alert_engine, make_provider, make_channel, fired, stores):
    channels = [make_channel(name=n) for n in ("a-slack", "b-slack", "c-slack")]
    providers = {"a-slack": make_provider(), "b-slack": make_provider(fail=True), "c-slack": make_provider()}
    engine = build_alert_engine(providers)
    engine.refresh_channels()

    attempts = engine.dispatcher.dispatch(fired, [c.id for c in channels])

    assert [a.channel_id for a in attempts] == [c.id for c in channels]
    assert [a.status for a in attempts] == ["sent", "failed", "sent"]
    assert attempts[1].error_message == "boom"
    for name in ("a-slack", "b-slack", "c-slack"):
        assert providers[name].kinds == ["trigger"]

    logged = stores.attempts.for_instance(fired.instance.id)
    assert len(logged) == 3
    assert {a.event for a in logged} == {"trigger"}

    counters = {
        c.name: (c.success_count, c.failure_count)
        for c in (stores.channels.get_channel(ch.id) for ch in channels)
    }
    assert counters == {"a-slack": (1, 0), "b-slack": (0, 1), "c-slack": (1, 0)}


def test_disabled_and_unknown_channels_are_skipped(build_alert_engine, make_provider, make_channel, fired, stores):
    live = make_channel(name="live")
    off = make_channel(name="off", enabled=False)
    providers = {"live": make_provider(), "off": make_provider()}
    engine = build_alert_engine(providers)
    engine.refresh_channels()

    attempts = engine.dispatcher.dispatch(fired, [off.id, live.id, 9999, live.id])

    assert [a.channel_id for a in attempts] == [live.id]
    assert providers["off"].events == []
    assert stores.channels.get_channel(off.id).success_count == 0


def test_no_linked_channels_means_no_attempts(build_alert_engine, fired):
    engine = build_alert_engine()
    engine.refresh_channels()
    assert engine.dispatcher.dispatch(fired, []) == []


def test_channel_test_records_status_without_touching_counters(build_alert_engine, make_provider, make_channel, stores):
    ch = make_channel(name="ops")
    providers = {"ops": make_provider()}
    engine = build_alert_engine(providers)
    engine.refresh_channels()

    attempt = engine.test_channel(ch.id)

    assert attempt.ok
    assert attempt.instance_id is None
    assert attempt.event == "test"
    assert providers["ops"].kinds == ["test"]
    reloaded = stores.channels.get_channel(ch.id)
    assert reloaded.test_status == "success"
    assert reloaded.last_test_at is not None
    assert (reloaded.success_count, reloaded.failure_count) == (0, 0)


def test_disabled_channel_can_still_be_tested(build_alert_engine, make_provider, make_channel, stores):
    ch = make_channel(name="muted", enabled=False)
    providers = {"muted": make_provider(fail=True)}
    engine = build_alert_engine(providers)
    engine.refresh_channels()

    attempt = engine.test_channel(ch.id)

    assert not attempt.ok
    assert providers["muted"].kinds == ["test"]
    assert stores.channels.get_channel(ch.id).test_status == "failed"


def test_unknown_channel_test_raises(build_alert_engine):
    engine = build_alert_engine()
    with pytest.raises(AlertingError, match="not found"):
        engine.test_channel(12345)
