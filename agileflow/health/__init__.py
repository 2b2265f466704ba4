"""Liveness and readiness probe endpoints."""
