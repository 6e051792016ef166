"""
Pure domain layer.

Immutable value objects and the injectable clock, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O
"""

from valuation_kernel.domain.account_patterns import WILDCARD, like_prefix
from valuation_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from valuation_kernel.domain.values import Posting

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "Posting",
    "WILDCARD",
    "like_prefix",
]
