"""Event queue store adapters."""
