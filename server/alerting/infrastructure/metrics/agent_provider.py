from __future__ import annotations

"""server/alerting/infrastructure/metrics/agent_provider.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
MetricsProvider adossé aux agents des nœuds (HTTP, httpx).

- l'URL et la clé API de chaque nœud viennent de l'annuaire (table nodes) ;
- une métrique = un endpoint de l'agent + un extracteur de valeur ;
- aucune exception ne sort : nœud inconnu, HTTP non-200, timeout, JSON
  inattendu ou valeur non numérique -> None (la règle est sautée ce tick).

L'agent expose des valeurs instantanées : `window_minutes` est accepté pour
respecter le contrat mais n'agrège rien ici.

On expose **http_get(...)** au niveau module pour que les tests puissent le
monkeypatcher.
"""

import logging
import math
import threading
from typing import Any, Callable, Optional, Protocol

import httpx

from alerting.domain.errors import MetricUnavailable

logger = logging.getLogger(__name__)

__all__ = ["AgentMetricsProvider", "METRIC_SOURCES", "http_get"]


class NodeLocator(Protocol):
    def lookup(self, node_id: int) -> Optional[tuple[str, Optional[str]]]: ...


# ──────────────────────────────────────────────────────────────────────────────
# Extracteurs (payload JSON de l'agent -> valeur)
# ──────────────────────────────────────────────────────────────────────────────

def _cpu_usage(data: Any) -> Any:
    return data["usage"]


def _memory_usage(data: Any) -> Any:
    total = float(data.get("total") or 0)
    if total <= 0:
        raise MetricUnavailable("memory total is zero")
    return float(data.get("used") or 0) / total * 100


def _disk_usage(data: Any) -> Any:
    # plus fort taux d'occupation parmi les volumes
    if not isinstance(data, list) or not data:
        raise MetricUnavailable("no disk reported")
    return max(float(d.get("use") or 0) for d in data)


def _first_interface(key: str) -> Callable[[Any], Any]:
    def extract(data: Any) -> Any:
        if not isinstance(data, list) or not data:
            raise MetricUnavailable("no network interface reported")
        return data[0].get(key) or 0
    return extract


def _load(key: str) -> Callable[[Any], Any]:
    def extract(data: Any) -> Any:
        return data["currentLoad"][key]
    return extract


def _temperature(data: Any) -> Any:
    return data["temperature"]["main"]


METRIC_SOURCES: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "cpu_usage": ("/stats/cpu", _cpu_usage),
    "memory_usage": ("/stats/memory", _memory_usage),
    "disk_usage": ("/stats/disk", _disk_usage),
    "network_rx_sec": ("/stats/network", _first_interface("rx_sec")),
    "network_tx_sec": ("/stats/network", _first_interface("tx_sec")),
    "load_1m": ("/data/cpu", _load("avgLoad1")),
    "load_5m": ("/data/cpu", _load("avgLoad5")),
    "load_15m": ("/data/cpu", _load("avgLoad15")),
    "temperature": ("/data/cpu", _temperature),
}


# ──────────────────────────────────────────────────────────────────────────────
# Wrapper HTTP patchable par les tests
# ──────────────────────────────────────────────────────────────────────────────

def http_get(url: str, headers: dict[str, str], timeout: float):
    """Renvoie un objet exposant `.status_code` et `.json()`."""
    with httpx.Client(timeout=timeout, follow_redirects=True) as client:
        return client.get(url, headers=headers)


class AgentMetricsProvider:
    def __init__(self, nodes: NodeLocator, *, timeout: float = 5.0):
        self.nodes = nodes
        self.timeout = timeout
        self._unsupported_seen: set[str] = set()
        self._seen_lock = threading.Lock()

    def get_value(self, node_id: int, metric: str, window_minutes: int) -> Optional[float]:  # noqa: ARG002
        source = METRIC_SOURCES.get(metric)
        if source is None:
            self._warn_unsupported(node_id, metric)
            return None
        path, extract = source

        try:
            node = self.nodes.lookup(node_id)
        except Exception:  # noqa: BLE001
            logger.warning("node lookup failed", extra={"node_id": node_id}, exc_info=True)
            return None
        if node is None:
            logger.debug("unknown node", extra={"node_id": node_id})
            return None
        base_url, api_key = node

        headers = {"Accept": "application/json"}
        if api_key:
            headers["x-api-key"] = api_key

        url = base_url.rstrip("/") + path
        try:
            resp = http_get(url, headers=headers, timeout=self.timeout)
            if resp.status_code != 200:
                raise MetricUnavailable(f"HTTP {resp.status_code}")
            value = float(extract(resp.json()))
        except (httpx.HTTPError, MetricUnavailable, ValueError, TypeError, KeyError, AttributeError) as exc:
            logger.debug(
                "metric fetch failed",
                extra={"node_id": node_id, "metric": metric, "url": url, "error": str(exc)},
            )
            return None

        if not math.isfinite(value):
            return None
        return value

    def _warn_unsupported(self, node_id: int, metric: str) -> None:
        # une seule fois par métrique : la règle reste sautée à chaque tick
        with self._seen_lock:
            if metric in self._unsupported_seen:
                return
            self._unsupported_seen.add(metric)
        logger.warning(
            "unsupported metric, rules on it are never evaluated",
            extra={"node_id": node_id, "metric": metric, "supported": sorted(METRIC_SOURCES)},
        )
