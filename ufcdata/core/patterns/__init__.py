"""Resilience patterns module."""

from ufcdata.core.patterns.circuitbreaker import CircuitBreaker, CircuitBreakerConfig, CircuitState

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
]
