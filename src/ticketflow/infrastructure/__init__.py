"""Technical adapters shared across bounded contexts."""
