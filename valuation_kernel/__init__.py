"""
Valuation Kernel

Foundation layer for custom valuation of ledger accounts that have no market
price feed (private loans, peer-to-peer lending, fixed deposits):
- Structured JSON logging with request-scoped context
- Typed, code-carrying exception hierarchy
- Injectable clock
- Immutable posting value objects
- SQLAlchemy posting store and read-only selectors
"""

__version__ = "0.1.0"
