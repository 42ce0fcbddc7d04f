"""Request hooks: JWT auth and structured logging."""
