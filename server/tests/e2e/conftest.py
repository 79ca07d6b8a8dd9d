# server/tests/e2e/conftest.py
# -------------------------------------------------------------------
# Conftest E2E :
# - Moteur câblé par build_engine (stores SQL, providers réels) sur la
#   base SQLite de test du conftest GLOBAL => server/tests/conftest.py
# - Seuls les bords réseau sont remplacés : agent HTTP des nœuds
#   (agent_provider.http_get), webhooks (requests.post) et SMTP.
# -------------------------------------------------------------------

from __future__ import annotations

import smtplib
from types import SimpleNamespace

import pytest


class _Resp:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload


@pytest.fixture
def node_agent(monkeypatch):
    """`node_agent.cpu = 85.0` : valeur renvoyée par /stats/cpu ; None -> HTTP 503."""
    from alerting.infrastructure.metrics import agent_provider

    state = SimpleNamespace(cpu=None, calls=[])

    def fake_get(url, headers, timeout):  # noqa: ARG001
        state.calls.append(url)
        if state.cpu is None:
            return _Resp(503)
        return _Resp(200, {"usage": state.cpu})

    monkeypatch.setattr(agent_provider, "http_get", fake_get, raising=True)
    return state


@pytest.fixture
def outbox(monkeypatch):
    """Capture des envois : `outbox.webhooks` (requests.post) et `outbox.emails` (SMTP)."""
    box = SimpleNamespace(webhooks=[], emails=[])

    def fake_post(url, json, headers, timeout):  # noqa: ARG001
        box.webhooks.append({"url": url, "json": json})
        return SimpleNamespace(status_code=200)

    class FakeSMTP:
        def __init__(self, host, port, timeout=None, **kw):  # noqa: ARG002
            pass

        def ehlo(self):
            pass

        def has_extn(self, name):  # noqa: ARG002
            return False

        def login(self, user, password):
            pass

        def send_message(self, msg, from_addr=None, to_addrs=None):  # noqa: ARG002
            box.emails.append(msg)

        def quit(self):
            pass

    monkeypatch.setattr("requests.post", fake_post, raising=True)
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP, raising=True)
    return box
