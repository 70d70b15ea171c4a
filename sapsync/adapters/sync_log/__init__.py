"""Sync log store adapters."""
