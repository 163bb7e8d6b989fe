"""
Circuit breaker for provider adapters.

Three states:
- CLOSED: normal operation, calls pass through
- OPEN: provider failed repeatedly, calls are rejected without a request
- HALF_OPEN: recovery probe, a limited number of calls pass

The fan-out consults one breaker per provider so a dead site stops costing
a full timeout on every search.

Usage:
    registry = CircuitBreakerRegistry()
    breaker = registry.get_or_create("MangaDex")

    if not breaker.can_execute():
        raise CircuitOpenError("MangaDex", breaker.retry_after)
    try:
        results = await provider.search(query)
        breaker.record_success()
    except Exception:
        breaker.record_failure()
        raise
"""

import time
import threading
from enum import Enum
from typing import Any, Dict, Optional
from dataclasses import dataclass

from anisync_app.errors import ProviderFetchError


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitOpenError(ProviderFetchError):
    """Raised when a provider's circuit is open and the call is skipped."""
    def __init__(self, provider_name: str, retry_after: float):
        self.retry_after = retry_after
        super().__init__(provider_name, f"circuit open, retry after {retry_after:.1f}s")


@dataclass
class CircuitBreakerConfig:
    failure_threshold: int = 5      # Consecutive failures before opening
    success_threshold: int = 2      # Successes in half-open to close
    recovery_timeout: float = 60.0  # Seconds before trying half-open
    half_open_max_calls: int = 3


class CircuitBreaker:
    """
    Circuit breaker for a single provider.

    State transitions:
    - CLOSED -> OPEN: after failure_threshold consecutive failures
    - OPEN -> HALF_OPEN: after recovery_timeout seconds
    - HALF_OPEN -> CLOSED: after success_threshold consecutive successes
    - HALF_OPEN -> OPEN: on any failure
    """

    def __init__(self, name: str, config: Optional[CircuitBreakerConfig] = None):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._state = CircuitState.CLOSED
        self._lock = threading.Lock()
        self._opened_at = 0.0
        self._half_open_calls = 0
        self._consecutive_failures = 0
        self._consecutive_successes = 0
        self._rejected = 0

    @property
    def state(self) -> CircuitState:
        """Current state; OPEN turns HALF_OPEN once the recovery timeout passed."""
        with self._lock:
            if self._state == CircuitState.OPEN:
                if time.monotonic() - self._opened_at >= self.config.recovery_timeout:
                    self._transition_to(CircuitState.HALF_OPEN)
            return self._state

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    @property
    def retry_after(self) -> float:
        """Seconds until the circuit may turn half-open."""
        if self._state != CircuitState.OPEN:
            return 0.0
        elapsed = time.monotonic() - self._opened_at
        return max(0.0, self.config.recovery_timeout - elapsed)

    def can_execute(self) -> bool:
        """True when CLOSED, or HALF_OPEN with probe capacity left."""
        state = self.state

        if state == CircuitState.CLOSED:
            return True

        if state == CircuitState.HALF_OPEN:
            with self._lock:
                if self._half_open_calls < self.config.half_open_max_calls:
                    self._half_open_calls += 1
                    return True

        with self._lock:
            self._rejected += 1
        return False

    def record_success(self) -> None:
        with self._lock:
            self._consecutive_successes += 1
            self._consecutive_failures = 0

            if self._state == CircuitState.HALF_OPEN:
                self._half_open_calls = max(0, self._half_open_calls - 1)
                if self._consecutive_successes >= self.config.success_threshold:
                    self._transition_to(CircuitState.CLOSED)

    def record_failure(self) -> None:
        with self._lock:
            self._consecutive_failures += 1
            self._consecutive_successes = 0

            if self._state == CircuitState.HALF_OPEN:
                self._half_open_calls = 0
                self._transition_to(CircuitState.OPEN)
            elif self._state == CircuitState.CLOSED:
                if self._consecutive_failures >= self.config.failure_threshold:
                    self._transition_to(CircuitState.OPEN)

    def _transition_to(self, new_state: CircuitState) -> None:
        """Transition to a new state (must hold lock)."""
        if self._state == new_state:
            return

        self._state = new_state
        if new_state == CircuitState.OPEN:
            self._opened_at = time.monotonic()
            self._consecutive_successes = 0
        elif new_state == CircuitState.HALF_OPEN:
            self._half_open_calls = 0
        elif new_state == CircuitState.CLOSED:
            self._consecutive_failures = 0

    def get_status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "retry_after": round(self.retry_after, 1),
            "consecutive_failures": self._consecutive_failures,
            "rejected": self._rejected,
        }


class CircuitBreakerRegistry:
    """One breaker per provider name, created on first use."""

    def __init__(self, default_config: Optional[CircuitBreakerConfig] = None):
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()
        self._default_config = default_config or CircuitBreakerConfig()

    def get_or_create(self, provider_name: str) -> CircuitBreaker:
        with self._lock:
            if provider_name not in self._breakers:
                self._breakers[provider_name] = CircuitBreaker(provider_name, self._default_config)
            return self._breakers[provider_name]

    def get_all_status(self) -> Dict[str, Any]:
        return {name: breaker.get_status() for name, breaker in self._breakers.items()}
