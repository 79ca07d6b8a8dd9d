from __future__ import annotations
"""server/alerting/application/services/evaluation_service.py
~~~~~~~~~~~~~~~~~~~~~~~~
Évaluation périodique des règles d'alerte (un passage = un "tick") :

- pré-lecture concurrente des valeurs (une lecture par couple nœud/métrique) ;
- pour chaque règle activée :
    valeur indisponible ou non finie           -> règle sautée ce tick
    condition vraie, pas d'instance, cooldown  -> instance créée + notif "trigger"
    condition vraie, instance ouverte          -> rien (dédoublonnage)
    condition vraie, cooldown non écoulé       -> rien (suppression)
    condition fausse, instance ouverte         -> résolution auto + notif "resolve"
    condition fausse, pas d'instance           -> rien
- une erreur sur une règle est journalisée (rule_id / node_id) et n'interrompt
  jamais les autres.

La séquence lecture -> décision -> écriture d'une règle est sérialisée par un
verrou propre à la règle ; l'index unique partiel de la base reste le dernier
garde-fou (ActiveInstanceExists -> traité comme une suppression).
"""

import logging
import math
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Callable, Optional

from alerting.core.utils.datetime import utcnow
from alerting.domain.entities import AlertEvent, AlertRule, EventKind
from alerting.domain.errors import ActiveInstanceExists
from alerting.domain.formatting import alert_message
from alerting.domain.policies import cooldown_permitted, is_satisfied
from alerting.domain.ports import AlertHistoryStore, Dispatcher, MetricsProvider, NodeDirectory, RuleStore

logger = logging.getLogger(__name__)

MetricKey = tuple[int, str]


@dataclass
class TickReport:
    started_at: datetime
    rules: int = 0
    evaluated: int = 0
    skipped: int = 0
    triggered: int = 0
    resolved: int = 0
    suppressed: int = 0
    errors: int = 0
    notifications_sent: int = 0
    notifications_failed: int = 0
    duration_seconds: float = 0.0
    error_rule_ids: list[int] = field(default_factory=list)

    def as_log_extra(self) -> dict:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        return data


class AlertEvaluator:
    def __init__(
        self,
        metrics: MetricsProvider,
        rules: RuleStore,
        history: AlertHistoryStore,
        dispatcher: Dispatcher,
        nodes: Optional[NodeDirectory] = None,
        *,
        window_minutes: int = 5,
        fetch_workers: int = 8,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.metrics = metrics
        self.rules = rules
        self.history = history
        self.dispatcher = dispatcher
        self.nodes = nodes
        self.window_minutes = window_minutes
        self.fetch_workers = max(1, int(fetch_workers))
        self.clock = clock
        self._locks: dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------ tick
    def run_tick(self, now: Optional[datetime] = None) -> TickReport:
        """
        Un passage complet sur les règles activées.

        Seule la lecture de la liste des règles peut lever (le tick entier est
        alors en échec) ; les erreurs par règle sont comptées dans le rapport.
        """
        now = now or self.clock()
        started = time.perf_counter()
        report = TickReport(started_at=now)

        rules = self.rules.list_enabled_rules()
        report.rules = len(rules)
        values = self._prefetch(rules)

        for rule in rules:
            try:
                self.evaluate_rule(rule, values.get((rule.node_id, rule.metric)), now, report)
            except Exception:  # noqa: BLE001
                report.errors += 1
                report.error_rule_ids.append(rule.id)
                logger.exception("rule evaluation failed", extra={"rule_id": rule.id, "node_id": rule.node_id})

        report.duration_seconds = round(time.perf_counter() - started, 3)
        logger.info("evaluation tick done", extra=report.as_log_extra())
        return report

    def _fetch(self, key: MetricKey) -> Optional[float]:
        node_id, metric = key
        try:
            return self.metrics.get_value(node_id, metric, self.window_minutes)
        except Exception:  # noqa: BLE001
            logger.warning("metrics provider raised", extra={"node_id": node_id, "metric": metric}, exc_info=True)
            return None

    def _prefetch(self, rules: list[AlertRule]) -> dict[MetricKey, Optional[float]]:
        keys = list(dict.fromkeys((r.node_id, r.metric) for r in rules))
        if not keys:
            return {}
        workers = min(self.fetch_workers, len(keys))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="metrics") as pool:
            return dict(zip(keys, pool.map(self._fetch, keys)))

    def _lock_for(self, rule_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(rule_id)
            if lock is None:
                lock = self._locks[rule_id] = threading.Lock()
            return lock

    def node_name(self, node_id: int) -> str:
        if self.nodes is None:
            return f"node-{node_id}"
        return self.nodes.display_name(node_id)

    # ------------------------------------------------------------------ règle
    def evaluate_rule(
        self,
        rule: AlertRule,
        value: Optional[float],
        now: datetime,
        report: Optional[TickReport] = None,
    ) -> Optional[AlertEvent]:
        """Applique la machine à états à UNE règle ; renvoie l'évènement diffusé (ou None)."""
        report = report or TickReport(started_at=now)
        ctx = {"rule_id": rule.id, "node_id": rule.node_id, "metric": rule.metric}

        if value is None:
            report.skipped += 1
            logger.debug("metric unavailable, rule skipped", extra=ctx)
            return None
        if not math.isfinite(value):
            report.skipped += 1
            logger.warning("non-finite metric value, rule skipped", extra={**ctx, "value": str(value)})
            return None

        report.evaluated += 1
        with self._lock_for(rule.id):
            event = self._decide(rule, value, now, report, ctx)

        if event is not None:
            attempts = self.dispatcher.dispatch(event, self.rules.linked_channel_ids(rule.id))
            sent = sum(1 for a in attempts if a.ok)
            report.notifications_sent += sent
            report.notifications_failed += len(attempts) - sent
        return event

    def _decide(self, rule: AlertRule, value: float, now: datetime, report: TickReport, ctx: dict) -> Optional[AlertEvent]:
        triggered = is_satisfied(value, rule.condition, rule.threshold)
        active = self.history.find_unresolved(rule.id)

        if triggered:
            if active is not None:
                report.suppressed += 1
                logger.debug("already firing", extra={**ctx, "instance_id": active.id})
                return None
            if not cooldown_permitted(rule.last_triggered, rule.cooldown_minutes, now):
                report.suppressed += 1
                logger.debug("cooldown active", extra={**ctx, "last_triggered": str(rule.last_triggered)})
                return None

            node_name = self.node_name(rule.node_id)
            message = alert_message(rule.metric, node_name, rule.condition, value, rule.threshold)
            try:
                instance = self.history.create_instance(rule, value=value, message=message, triggered_at=now)
            except ActiveInstanceExists:
                report.suppressed += 1
                logger.info("concurrent trigger suppressed", extra=ctx)
                return None

            rule.last_triggered = now
            rule.trigger_count += 1
            report.triggered += 1
            logger.warning(
                "alert triggered",
                extra={**ctx, "instance_id": instance.id, "value": value, "severity": rule.severity},
            )
            return AlertEvent(kind=EventKind.TRIGGER, rule=rule, instance=instance, node_name=node_name, value=value)

        if active is None:
            return None

        resolved = self.history.resolve_instance(active.id, automatic=True, at=now)
        report.resolved += 1
        logger.info("alert resolved", extra={**ctx, "instance_id": resolved.id, "value": value})
        return AlertEvent(
            kind=EventKind.RESOLVE,
            rule=rule,
            instance=resolved,
            node_name=self.node_name(rule.node_id),
            value=value,
        )
