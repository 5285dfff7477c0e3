"""
Periodic offer expiration.

WHAT: Background timer that expires pending offers past their deadline
WHY: Offers must not stay pending until someone happens to read them
HOW: threading.Timer re-armed after each run; the sweep itself is idempotent
"""

import threading
from typing import Optional

from .offer_engine import OfferNegotiationEngine
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ExpirationSweeper:
    """
    Run engine.sweep_expired() every interval_seconds.

    A failed sweep is logged and the timer is re-armed; the next run picks up
    whatever was missed.
    """

    def __init__(self, engine: OfferNegotiationEngine, interval_seconds: float):
        self.engine = engine
        self.interval_seconds = interval_seconds
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._stopped = True

    @property
    def running(self) -> bool:
        return not self._stopped

    def run_once(self) -> int:
        try:
            return self.engine.sweep_expired()
        except Exception as e:
            logger.error(f"Offer expiration sweep failed: {e}", exc_info=True)
            return 0

    def _tick(self):
        self.run_once()
        self._schedule()

    def _schedule(self):
        with self._lock:
            if self._stopped:
                return
            self._timer = threading.Timer(self.interval_seconds, self._tick)
            self._timer.daemon = True
            self._timer.start()

    def start(self):
        with self._lock:
            if not self._stopped:
                return
            self._stopped = False
        self._schedule()
        logger.info(f"Started offer expiration sweeper (interval: {self.interval_seconds}s)")

    def stop(self):
        with self._lock:
            self._stopped = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        logger.info("Stopped offer expiration sweeper")
