"""Circuit breaker registry with explicit per-destination state management."""

from typing import Dict, Optional

from resilient_fetch.fetcher.clock import Clock, MonotonicClock
from resilient_fetch.models.data_models import BreakerState, CircuitState
from resilient_fetch.monitoring.logger import StructuredLogger


class CircuitBreaker:
    """
    Circuit breaker with CLOSED/OPEN/HALF_OPEN states, one per destination.

    Prevents calls to failing destinations with configurable thresholds:
    - Opens after `failure_threshold` consecutive failed request sequences
    - Stays open for `cooldown_seconds`
    - Transitions to half-open for a single probe request
    - Closes on successful probe or opens again on failure
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        cooldown_seconds: float = 60.0,
        clock: Optional[Clock] = None,
        logger: Optional[StructuredLogger] = None
    ):
        """
        Initialize circuit breaker registry.

        Args:
            failure_threshold: Number of failures before opening circuit
            cooldown_seconds: Time to wait before attempting half-open probe
            clock: Clock interface for time management (defaults to MonotonicClock)
            logger: Optional structured logger for state changes
        """
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock or MonotonicClock()
        self.logger = logger
        self._circuits: Dict[str, BreakerState] = {}

    def _get_circuit(self, destination: str) -> BreakerState:
        """Get or create circuit state for destination."""
        if destination not in self._circuits:
            self._circuits[destination] = BreakerState()
        return self._circuits[destination]

    def _transition(self, destination: str, circuit: BreakerState, new_state: CircuitState) -> None:
        if circuit.state == new_state:
            return
        circuit.state = new_state
        if self.logger:
            self.logger.circuit_breaker_state(
                source=destination,
                state=new_state.value,
                failures=circuit.failure_count
            )

    def is_open(self, destination: str) -> bool:
        """
        Check whether requests to destination must be skipped.

        The first caller to observe an elapsed cool-down moves the circuit to
        HALF_OPEN and is let through as the probe. While that probe is
        outstanding every other caller sees the circuit as open.

        Args:
            destination: Destination identifier (URL)

        Returns:
            True if no request should be sent
        """
        circuit = self._circuits.get(destination)
        if circuit is None or circuit.state == CircuitState.CLOSED:
            return False

        current_time = self.clock.now()

        if circuit.state == CircuitState.OPEN:
            if current_time - circuit.last_failure_at < self.cooldown_seconds:
                return True
            self._transition(destination, circuit, CircuitState.HALF_OPEN)
            circuit.probe_started_at = current_time
            return False

        # HALF_OPEN: one probe at a time; a probe older than the cool-down is abandoned
        if (
            circuit.probe_started_at is not None
            and current_time - circuit.probe_started_at < self.cooldown_seconds
        ):
            return True
        circuit.probe_started_at = current_time
        return False

    def record_success(self, destination: str) -> None:
        """Record a successful request sequence for destination."""
        circuit = self._get_circuit(destination)
        circuit.failure_count = 0
        circuit.probe_started_at = None
        self._transition(destination, circuit, CircuitState.CLOSED)

    def record_failure(self, destination: str) -> None:
        """
        Record a failed request sequence for destination.

        Every failed sequence counts, whatever its failure class; retryability
        only decides how many attempts the sequence made.
        """
        circuit = self._get_circuit(destination)
        circuit.failure_count += 1
        circuit.last_failure_at = self.clock.now()

        if circuit.state == CircuitState.HALF_OPEN:
            # Failed probe - reopen circuit
            circuit.probe_started_at = None
            self._transition(destination, circuit, CircuitState.OPEN)
        elif circuit.failure_count >= self.failure_threshold:
            self._transition(destination, circuit, CircuitState.OPEN)

    def state(self, destination: str) -> CircuitState:
        """Get current circuit state for destination (no transitions)."""
        circuit = self._circuits.get(destination)
        return circuit.state if circuit else CircuitState.CLOSED

    def failure_count(self, destination: str) -> int:
        circuit = self._circuits.get(destination)
        return circuit.failure_count if circuit else 0

    def open_count(self) -> int:
        """Number of destinations whose circuit is currently OPEN."""
        return sum(1 for circuit in self._circuits.values() if circuit.state == CircuitState.OPEN)

    def reset(self, destination: Optional[str] = None) -> None:
        """Reset one destination, or every destination when none is given."""
        if destination is None:
            self._circuits.clear()
        else:
            self._circuits.pop(destination, None)
