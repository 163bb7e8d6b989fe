from sources.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState


def test_opens_after_threshold():
    breaker = CircuitBreaker("X", CircuitBreakerConfig(failure_threshold=3))
    for _ in range(2):
        breaker.record_failure()
    assert breaker.state == CircuitState.CLOSED
    breaker.record_failure()
    assert breaker.state == CircuitState.OPEN
    assert not breaker.can_execute()
    assert breaker.get_status()["rejected"] == 1


def test_success_resets_failure_count():
    breaker = CircuitBreaker("X", CircuitBreakerConfig(failure_threshold=2))
    breaker.record_failure()
    breaker.record_success()
    breaker.record_failure()
    assert breaker.state == CircuitState.CLOSED


def test_half_open_recovers():
    breaker = CircuitBreaker("X", CircuitBreakerConfig(
        failure_threshold=1, success_threshold=2, recovery_timeout=0
    ))
    breaker.record_failure()
    assert breaker.state == CircuitState.HALF_OPEN
    assert breaker.can_execute()
    breaker.record_success()
    breaker.record_success()
    assert breaker.state == CircuitState.CLOSED


def test_half_open_failure_reopens():
    breaker = CircuitBreaker("X", CircuitBreakerConfig(failure_threshold=1, recovery_timeout=0))
    breaker.record_failure()
    assert breaker.state == CircuitState.HALF_OPEN
    breaker.record_failure()
    assert breaker._state == CircuitState.OPEN
