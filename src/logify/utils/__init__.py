"""Shared utilities: timestamp handling and structured logging."""
