"""
Autoplay and free-spins auto-continue scheduling.

Continuing play is a new spin request issued after the previous spin has
settled and a delay has elapsed. Nothing here touches spin state directly;
cancelling only suppresses the next request.
"""
import logging
import threading

from cascade_be.exceptions import AppException

logger = logging.getLogger(__name__)


class AutoplayScheduler:
    """
    Re-issues spin requests on a timer while autoplay or free spins remain.

    Args:
        spin_callback (callable): Runs one spin and returns its SpinOutcome.
        delay_ms (int): Delay between autoplay spins.
        free_spins_delay_ms (int, optional): Delay between free spins. Defaults to ``delay_ms``.
        timer_factory (callable): ``threading.Timer`` compatible factory; tests
            replace it to fire synchronously.
    """

    def __init__(self, spin_callback, delay_ms, free_spins_delay_ms=None, timer_factory=threading.Timer):
        self.spin_callback = spin_callback
        self.delay_ms = delay_ms
        self.free_spins_delay_ms = delay_ms if free_spins_delay_ms is None else free_spins_delay_ms
        self.timer_factory = timer_factory
        self.spins_run = 0
        self.last_outcome = None
        self.last_error = None
        self._lock = threading.RLock()
        self._timer = None
        self._generation = 0
        self._cancelled = False
        self._finished = threading.Event()
        self._finished.set()

    @property
    def is_pending(self):
        return self._timer is not None

    @property
    def running(self):
        return not self._finished.is_set()

    def start(self):
        """Issue the first spin request immediately (on the timer thread)."""
        with self._lock:
            self._cancelled = False
            self.last_error = None
            self._finished.clear()
            self._schedule(0)

    def next_delay_ms(self, outcome):
        """Delay before the next request, or None when play should stop."""
        if outcome.free_spins_remaining > 0:
            return self.free_spins_delay_ms
        if outcome.autoplay_remaining > 0:
            return self.delay_ms
        return None

    def after_settlement(self, outcome):
        """
        Schedule the follow-up request for a settled spin.

        Returns:
            bool: True when another spin was scheduled.
        """
        with self._lock:
            if self._cancelled:
                self._finished.set()
                return False
            delay = self.next_delay_ms(outcome)
            if delay is None:
                self._timer = None
                self._finished.set()
                return False
            self._schedule(delay)
            return True

    def cancel(self):
        """Suppress the pending request. A spin already running is left to finish."""
        with self._lock:
            self._cancelled = True
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._finished.set()
        logger.info("Autoplay cancelled")

    def wait(self, timeout=None):
        return self._finished.wait(timeout)

    def _schedule(self, delay_ms):
        self._generation += 1
        timer = self.timer_factory(delay_ms / 1000.0, self._fire, args=(self._generation,))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _fire(self, generation):
        with self._lock:
            if self._cancelled or generation != self._generation:
                return
            self._timer = None

        try:
            outcome = self.spin_callback()
        except AppException as e:
            logger.warning(f"Autoplay stopped: {e.error_code} {e.status_message}")
            self.last_error = e
            self._finished.set()
            return
        except Exception as e:
            logger.error(f"Autoplay stopped by unexpected error: {e}", exc_info=True)
            self.last_error = e
            self._finished.set()
            return

        self.spins_run += 1
        self.last_outcome = outcome
        self.after_settlement(outcome)
