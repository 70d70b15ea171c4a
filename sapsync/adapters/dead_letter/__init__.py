"""Dead letter store adapters."""
