from __future__ import annotations
"""server/alerting/main.py
~~~~~~~~~~~~~~~~~~~~~~~~
Point d'entrée : `python -m alerting.main` (ou `alerting-engine`).

logs -> schéma -> moteur -> attente de SIGINT/SIGTERM -> arrêt propre.
"""

import logging
import signal
import threading

from alerting.application.engine import build_engine
from alerting.core.config import settings
from alerting.core.logging import setup_logging
from alerting.infrastructure.persistence.database.session import init_db, init_engine, init_sessionmaker

logger = logging.getLogger(__name__)


def main() -> int:
    setup_logging(settings.LOG_LEVEL)
    init_db(init_engine())
    engine = build_engine(settings, session_factory=init_sessionmaker())

    stop = threading.Event()

    def _handle_signal(signum, frame):  # noqa: ARG001
        logger.info("signal received, shutting down", extra={"signal": signum})
        stop.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    engine.start()
    try:
        stop.wait()
    finally:
        engine.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
