"""
Background confirmation of STK push payments.

A PaymentPoller asks the gateway for the status of one CheckoutRequestID
at most max_attempts times, interval_seconds apart. The registry owns the
polling threads so they can all be stopped when the application shuts
down.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple
import logging
import threading

from kamkunji.clients.gateway import PAYMENT_FAILED, PAYMENT_PAID, PaymentQueryResult
from kamkunji.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

OUTCOME_PAID = "paid"
OUTCOME_FAILED = "failed"
OUTCOME_TIMED_OUT = "timed_out"
OUTCOME_CANCELLED = "cancelled"


@dataclass
class PollResult:
    outcome: str
    attempts: int
    last_result: Optional[PaymentQueryResult] = None


class PaymentPoller:

    def __init__(
        self,
        query: Callable[[], PaymentQueryResult],
        max_attempts: int = 20,
        interval_seconds: float = 3.0,
        stop_event: Optional[threading.Event] = None,
        wait: Optional[Callable[[float], bool]] = None,
        label: str = "",
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.query = query
        self.max_attempts = max_attempts
        self.interval_seconds = interval_seconds
        self.stop_event = stop_event or threading.Event()
        # wait(seconds) returns True when polling should stop
        self._wait = wait or self.stop_event.wait
        self.label = label

    def cancel(self) -> None:
        self.stop_event.set()

    def run(self) -> PollResult:
        last_result: Optional[PaymentQueryResult] = None

        for attempt in range(1, self.max_attempts + 1):
            if self.stop_event.is_set():
                logger.info(f"Payment polling {self.label} cancelled before attempt {attempt}")
                return PollResult(OUTCOME_CANCELLED, attempt - 1, last_result)

            try:
                last_result = self.query()
            except ExternalServiceError as e:
                # Transport failures still use up an attempt
                logger.warning(f"Payment poll {self.label} attempt {attempt} failed: {e.message}")
            else:
                if last_result.state == PAYMENT_PAID:
                    logger.info(f"Payment {self.label} confirmed on attempt {attempt}")
                    return PollResult(OUTCOME_PAID, attempt, last_result)
                if last_result.state == PAYMENT_FAILED:
                    logger.info(f"Payment {self.label} failed on attempt {attempt}: {last_result.description}")
                    return PollResult(OUTCOME_FAILED, attempt, last_result)

            if attempt < self.max_attempts and self._wait(self.interval_seconds):
                logger.info(f"Payment polling {self.label} cancelled after attempt {attempt}")
                return PollResult(OUTCOME_CANCELLED, attempt, last_result)

        logger.warning(
            f"Payment verification for {self.label} taking longer than expected: "
            f"gave up after {self.max_attempts} attempts"
        )
        return PollResult(OUTCOME_TIMED_OUT, self.max_attempts, last_result)


class PaymentPollerRegistry:
    """Tracks running pollers by key (the order id)"""

    def __init__(self):
        self._lock = threading.Lock()
        self._running: Dict[Any, Tuple[PaymentPoller, threading.Thread]] = {}

    def start(self, key: Any, poller: PaymentPoller,
              on_done: Optional[Callable[[PollResult], None]] = None) -> threading.Thread:
        """Run poller on a daemon thread; an existing poller for key is cancelled first"""
        self.cancel(key)

        def _target():
            try:
                result = poller.run()
                if on_done is not None:
                    on_done(result)
            except Exception as e:
                logger.error(f"Payment poller {key} crashed: {str(e)}", exc_info=True)
            finally:
                with self._lock:
                    current = self._running.get(key)
                    if current is not None and current[0] is poller:
                        del self._running[key]

        thread = threading.Thread(target=_target, name=f"payment-poller-{key}", daemon=True)
        with self._lock:
            self._running[key] = (poller, thread)
        thread.start()
        return thread

    def cancel(self, key: Any) -> bool:
        with self._lock:
            entry = self._running.pop(key, None)
        if entry is None:
            return False
        entry[0].cancel()
        return True

    def cancel_all(self, timeout: Optional[float] = 5.0) -> int:
        with self._lock:
            entries = list(self._running.values())
            self._running.clear()
        for poller, _ in entries:
            poller.cancel()
        for _, thread in entries:
            if thread is not threading.current_thread():
                thread.join(timeout)
        if entries:
            logger.info(f"Cancelled {len(entries)} outstanding payment pollers")
        return len(entries)

    def active_count(self) -> int:
        with self._lock:
            return len(self._running)
