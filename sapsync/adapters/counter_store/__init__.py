"""Counter store adapters backing the rate limiter.

The limiter only depends on ``AbstractCounterStore`` so the same window logic
runs against the per-process store in development and tests, and against
Redis when several workers share one budget.
"""
