from __future__ import annotations
"""server/alerting/domain/formatting.py
~~~~~~~~~~~~~~~~~~~~~~~~
Libellés et unités des métriques + message humain d'une instance.
"""

import math
from typing import Any

METRIC_LABELS = {
    "cpu_usage": "CPU Usage",
    "memory_usage": "Memory Usage",
    "disk_usage": "Disk Usage",
    "network_rx_sec": "Network RX",
    "network_tx_sec": "Network TX",
    "load_1m": "1-minute Load Average",
    "load_5m": "5-minute Load Average",
    "load_15m": "15-minute Load Average",
    "temperature": "Temperature",
    "processes_count": "Process Count",
    "uptime_hours": "Uptime",
}

_PERCENT = {"cpu_usage", "memory_usage", "disk_usage"}
_RATE = {"network_rx_sec", "network_tx_sec"}
_LOAD = {"load_1m", "load_5m", "load_15m"}


def metric_label(metric: str) -> str:
    return METRIC_LABELS.get(metric, metric)


def format_bytes(n: float) -> str:
    if n <= 0:
        return "0 B"
    sizes = ["B", "KB", "MB", "GB", "TB"]
    i = max(0, min(int(math.floor(math.log(n, 1024))), len(sizes) - 1))
    scaled = round(n / (1024 ** i), 2)
    # 1.50 -> "1.5", 2.00 -> "2"
    return f"{scaled:g} {sizes[i]}"


def format_value(metric: str, value: Any) -> str:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return str(value)
    if not math.isfinite(v):
        return str(v)
    if metric in _PERCENT:
        return f"{v:.1f}%"
    if metric in _RATE:
        return f"{format_bytes(v)}/s"
    if metric in _LOAD:
        return f"{v:.2f}"
    if metric == "temperature":
        return f"{v:.1f}°C"
    if metric == "processes_count":
        return str(int(v))
    if metric == "uptime_hours":
        return f"{v:.1f} hours"
    return f"{v:g}"


def alert_message(metric: str, node_name: str, condition: str, value: Any, threshold: Any) -> str:
    """
    "<metric> on <node> is <condition> threshold: <value> (threshold: <condition> <threshold>)"
    """
    return (
        f"{metric_label(metric)} on {node_name} is {condition} threshold: "
        f"{format_value(metric, value)} (threshold: {condition} {format_value(metric, threshold)})"
    )


def resolution_message(metric: str, node_name: str, value: Any) -> str:
    return f"{metric_label(metric)} on {node_name} is back to normal: {format_value(metric, value)}"
