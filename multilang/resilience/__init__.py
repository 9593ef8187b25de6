"""
Resilience patterns for networked storage.

Circuit breakers stop lookups from piling up on a dead database server.
"""

from multilang.resilience.circuit_breakers import (
    call_with_breaker,
    create_storage_breaker,
    with_retry,
)

__all__ = [
    "call_with_breaker",
    "create_storage_breaker",
    "with_retry",
]
