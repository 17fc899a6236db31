import time
import logging

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Stops calling a transport after repeated failures.

    Once ``failure_threshold`` consecutive failures are recorded the circuit
    opens and requests are refused until ``recovery_time`` seconds have
    passed; then trial requests are let through (half-open) and the first
    success closes it again.
    """

    def __init__(self, name="provider", failure_threshold=5, recovery_time=30, clock=time.monotonic):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_time = recovery_time
        self.failures = 0
        self.opened_at = None
        self._clock = clock

    @property
    def is_open(self):
        return self.opened_at is not None

    def allow_request(self):
        if self.opened_at is None:
            return True
        # half-open
        return self._clock() - self.opened_at >= self.recovery_time

    def record_failure(self):
        self.failures += 1
        if self.failures >= self.failure_threshold:
            if self.opened_at is None:
                logger.warning(f"Circuit opened for {self.name} after {self.failures} failures")
            self.opened_at = self._clock()

    def record_success(self):
        if self.opened_at is not None:
            logger.info(f"Circuit closed for {self.name}")
        self.failures = 0
        self.opened_at = None
