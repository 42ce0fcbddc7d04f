"""Persistence, document mirror, search and token services."""
