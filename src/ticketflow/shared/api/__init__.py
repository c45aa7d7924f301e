"""Shared API helpers (middleware and exception handlers)."""
