"""
Reliability utilities.

Includes the Circuit Breaker pattern used around remote ledger calls and the
single-flight guard that keeps a console form from submitting twice.
"""

import time
from contextlib import asynccontextmanager
from typing import Callable, Any, Tuple, Type

from backend.app.core.exceptions import SubmissionInProgressError


class CircuitOpenError(Exception):
    pass


class CircuitBreaker:
    """
    Simple Circuit Breaker implementation.
    If 'failure_threshold' failures occur within 'reset_timeout',
    the circuit opens and rejects calls for 'reset_timeout' seconds.

    Only exceptions listed in 'trip_on' count as failures, so a remote
    rejection of bad input does not open the circuit.
    """
    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: int = 60,
        trip_on: Tuple[Type[BaseException], ...] = (Exception,),
    ):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.trip_on = trip_on
        self.failures = 0
        self.last_failure_time = 0
        self.state = "CLOSED" # CLOSED, OPEN, HALF_OPEN

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        if self.state == "OPEN":
            if time.time() - self.last_failure_time > self.reset_timeout:
                self.state = "HALF_OPEN"
            else:
                raise CircuitOpenError("Circuit is OPEN")

        try:
            result = await func(*args, **kwargs)
        except self.trip_on as e:
            self.record_failure()
            raise e

        if self.state == "HALF_OPEN" or self.failures:
            self.reset_state()
        return result

    def record_failure(self):
        self.failures += 1
        self.last_failure_time = time.time()
        if self.state == "HALF_OPEN" or self.failures >= self.failure_threshold:
            self.state = "OPEN"

    def reset_state(self):
        self.failures = 0
        self.state = "CLOSED"


class SingleFlight:
    """
    At most one in-flight submission per form.

    The console disables a submit control until its call resolves; this is
    the server-side equivalent. A second claim while busy fails immediately.
    """

    def __init__(self, form: str):
        self.form = form
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def ensure_idle(self) -> None:
        """Refuse form edits while the form's submission is in flight."""
        if self._busy:
            raise SubmissionInProgressError(self.form)

    @asynccontextmanager
    async def claim(self):
        self.ensure_idle()
        self._busy = True
        try:
            yield
        finally:
            self._busy = False
