from __future__ import annotations
"""server/alerting/workers/scheduler.py
~~~~~~~~~~~~~~~~~~~~~~~~
Boucle d'évaluation périodique (APScheduler, BackgroundScheduler).

États : arrêté -> en marche -> arrêté.
- start() : idempotent ; un job `interval` unique dont le premier passage a
  lieu tout de suite (next_run_time=now), puis toutes les `interval_seconds`
  (fixé à la construction). max_instances=1 + coalesce : jamais deux passages
  en parallèle, les passages manqués sont fusionnés.
- stop()  : idempotent ; shutdown(wait=False) empêche le passage suivant sans
  interrompre un passage en cours.
- un passage en échec est journalisé et compté (`consecutive_failures`), il
  n'arrête jamais le job.
- avant chaque passage, le registre des canaux est rechargé s'il est plus
  vieux que `channel_refresh_seconds`.
"""

import logging
import threading
import time
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from alerting.core.utils.datetime import utcnow

logger = logging.getLogger(__name__)

FAILURE_ALERT_THRESHOLD = 5
JOB_ID = "alert-evaluation"


class EvaluationScheduler:
    def __init__(
        self,
        tick: Callable[[], object],
        *,
        interval_seconds: float = 30.0,
        refresh_channels: Optional[Callable[[], object]] = None,
        channels_stale: Optional[Callable[[], bool]] = None,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._tick = tick
        self.interval = float(interval_seconds)
        self._refresh_channels = refresh_channels
        self._channels_stale = channels_stale

        self._state_lock = threading.Lock()
        self._scheduler: Optional[BackgroundScheduler] = None

        self.consecutive_failures = 0
        self.ticks = 0
        self.last_tick_at: Optional[float] = None

    def is_running(self) -> bool:
        with self._state_lock:
            return self._scheduler is not None and self._scheduler.running

    def _build_scheduler(self) -> BackgroundScheduler:
        # un scheduler neuf à chaque start() : ses pools ne survivent pas à shutdown()
        scheduler = BackgroundScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": max(1, int(self.interval)),
            },
        )
        scheduler.add_job(
            self.run_once,
            "interval",
            seconds=self.interval,
            id=JOB_ID,
            name="alert evaluation tick",
            next_run_time=utcnow(),
            max_instances=1,
            coalesce=True,
        )
        return scheduler

    def start(self) -> bool:
        """Démarre la boucle. Renvoie False (warning) si elle tourne déjà."""
        with self._state_lock:
            if self._scheduler is not None and self._scheduler.running:
                logger.warning("scheduler already running")
                return False
            scheduler = self._build_scheduler()
            scheduler.start()
            self._scheduler = scheduler
        logger.info("scheduler started", extra={"interval_seconds": self.interval})
        return True

    def stop(self) -> bool:
        """Arrête la boucle. Renvoie False si elle était déjà arrêtée."""
        with self._state_lock:
            scheduler, self._scheduler = self._scheduler, None
            if scheduler is None or not scheduler.running:
                return False
            # wait=False : un passage en cours se termine seul, aucun autre ne suit
            scheduler.shutdown(wait=False)
        logger.info("scheduler stopped")
        return True

    def run_once(self) -> bool:
        """Un passage (refresh éventuel + tick). Ne lève jamais."""
        try:
            if self._refresh_channels is not None and (self._channels_stale is None or self._channels_stale()):
                self._refresh_channels()
            self._tick()
        except Exception:  # noqa: BLE001
            self.consecutive_failures += 1
            logger.exception("evaluation tick failed", extra={"consecutive_failures": self.consecutive_failures})
            if self.consecutive_failures >= FAILURE_ALERT_THRESHOLD:
                logger.critical(
                    "evaluation keeps failing",
                    extra={"consecutive_failures": self.consecutive_failures},
                )
            return False
        finally:
            self.ticks += 1
            self.last_tick_at = time.time()
        self.consecutive_failures = 0
        return True
