# server/tests/conftest.py
"""
Conftest *global* pour toute la suite de tests.

Points clés :
- Pose des ENV sûres AVANT l'import de alerting.core.config (pas d'appel externe).
- Monte une base SQLite (fichier temporaire, une connexion par thread) + create_all :
  le dispatcher et la pré-lecture des métriques travaillent dans des pools de
  threads, chaque thread doit avoir sa propre connexion.
- Purge toutes les tables après chaque test (évite les fuites d'état).
- Fournit les fakes partagés : fournisseur de métriques, providers de canaux.
"""

from __future__ import annotations

import os
import threading
from types import SimpleNamespace

import pytest


def pytest_configure(config) -> None:  # noqa: ARG001
    """S'exécute avant la collecte -> parfait pour poser les ENV lues par Settings()."""
    os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
    os.environ.setdefault("EVALUATION_INTERVAL_SECONDS", "30")
    os.environ.setdefault("NOTIFY_TIMEOUT_SECONDS", "1")
    os.environ.setdefault("METRICS_TIMEOUT_SECONDS", "1")


# ============================================================================
# DB SQLite partagée + Base.metadata.create_all
# ============================================================================
@pytest.fixture(scope="session")
def _sqlite_engine(tmp_path_factory):
    from alerting.infrastructure.persistence.database.session import build_engine, init_db

    db_file = tmp_path_factory.mktemp("db") / "alerting-tests.db"
    engine = build_engine(f"sqlite+pysqlite:///{db_file}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="session")
def _Session(_sqlite_engine):
    from alerting.infrastructure.persistence.database.session import make_sessionmaker

    return make_sessionmaker(_sqlite_engine)


@pytest.fixture
def Session(_Session):
    """sessionmaker à utiliser comme `with Session() as s:` (ou à passer aux stores)."""
    return _Session


@pytest.fixture(autouse=True)
def _clear_db_between_tests(request):
    """
    Après chaque test utilisant la base, on supprime le contenu de toutes les tables.
    ⚠️ Générateur : doit 'yield' aussi quand la base n'est pas utilisée.
    """
    yield
    if "_Session" not in request.fixturenames:
        return
    from alerting.infrastructure.persistence.database.base import Base

    sm = request.getfixturevalue("_Session")
    with sm() as s:
        for table in reversed(Base.metadata.sorted_tables):
            s.execute(table.delete())
        s.commit()


@pytest.fixture
def stores(Session):
    """Tous les stores SQL branchés sur la base de test."""
    from alerting.infrastructure.persistence.stores import (
        SqlAlertHistoryStore,
        SqlChannelStore,
        SqlNodeDirectory,
        SqlNotificationAttemptLog,
        SqlRuleStore,
    )

    return SimpleNamespace(
        rules=SqlRuleStore(Session),
        history=SqlAlertHistoryStore(Session),
        channels=SqlChannelStore(Session),
        attempts=SqlNotificationAttemptLog(Session),
        nodes=SqlNodeDirectory(Session),
    )


# ============================================================================
# Fakes
# ============================================================================
class FakeMetrics:
    """MetricsProvider en mémoire : `set(node_id, metric, value)` ; None = indisponible."""

    def __init__(self):
        self.values: dict[tuple[int, str], float | None] = {}
        self.calls: list[tuple[int, str, int]] = []
        self._lock = threading.Lock()

    def set(self, node_id: int, metric: str, value):
        self.values[(node_id, metric)] = value

    def get_value(self, node_id, metric, window_minutes):
        with self._lock:
            self.calls.append((node_id, metric, window_minutes))
        return self.values.get((node_id, metric))


class RecordingProvider:
    """Provider de canal factice : enregistre les évènements, échoue si `fail`."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.events = []
        self._lock = threading.Lock()

    def send(self, event) -> None:
        with self._lock:
            self.events.append(event)
        if self.fail:
            raise RuntimeError("boom")

    @property
    def kinds(self) -> list[str]:
        return [e.kind.value for e in self.events]


@pytest.fixture
def fake_metrics():
    return FakeMetrics()


@pytest.fixture
def make_provider():
    return RecordingProvider


# ============================================================================
# Moteur complet branché sur la base de test + fakes
# ============================================================================
@pytest.fixture
def build_alert_engine(stores, fake_metrics):
    """
    Fabrique un AlertEngine : stores SQL réels, métriques factices, providers
    factices choisis par NOM de canal (`providers={"ops-slack": RecordingProvider()}`).
    """
    from alerting.application.engine import AlertEngine
    from alerting.application.services.channel_registry import ChannelRegistry
    from alerting.application.services.evaluation_service import AlertEvaluator
    from alerting.application.services.notification_service import NotificationDispatcher

    def _build(providers=None, *, clock=None, interval_seconds=30.0):
        providers = providers if providers is not None else {}

        def factory(channel):
            return providers.setdefault(channel.name, RecordingProvider())

        registry = ChannelRegistry(stores.channels, factory)
        dispatcher = NotificationDispatcher(registry, stores.channels, stores.attempts, max_workers=4)
        kwargs = {"clock": clock} if clock is not None else {}
        evaluator = AlertEvaluator(
            fake_metrics, stores.rules, stores.history, dispatcher, stores.nodes,
            window_minutes=5, fetch_workers=4, **kwargs,
        )
        return AlertEngine(evaluator, dispatcher, registry, stores.history, interval_seconds=interval_seconds)

    return _build


# ============================================================================
# Fabriques de données (via les stores SQL)
# ============================================================================
DEFAULT_SLACK_CONFIG = {"webhookUrl": "https://hooks.slack.invalid/T000/B000/XXX", "channel": "#ops"}


@pytest.fixture
def make_node(stores):
    def _make(node_id: int = 42, name: str = "web-42", url: str = "http://10.0.0.42:4000", api_key: str | None = "k"):
        return stores.nodes.add_node(node_id=node_id, name=name, url=url, api_key=api_key)
    return _make


@pytest.fixture
def make_rule(stores, make_node):
    def _make(node_id: int = 42, **overrides):
        if stores.nodes.lookup(node_id) is None:
            make_node(node_id=node_id, name=f"web-{node_id}")
        fields = dict(
            node_id=node_id,
            metric="cpu_usage",
            condition="above",
            threshold=80.0,
            severity="critical",
            cooldown_minutes=5,
        )
        fields.update(overrides)
        return stores.rules.create_rule(**fields)
    return _make


@pytest.fixture
def make_channel(stores):
    def _make(name: str = "ops-slack", type: str = "slack", config: dict | None = None, enabled: bool = True):
        return stores.channels.create_channel(
            name=name, type=type, config=config if config is not None else dict(DEFAULT_SLACK_CONFIG), enabled=enabled
        )
    return _make
