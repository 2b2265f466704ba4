"""Readiness polling against the AgileFlow probe endpoints."""

from agileflow.readiness.poller import (
    ReadinessPoller,
    check_once,
    wait_until_ready,
)

__all__ = ["ReadinessPoller", "check_once", "wait_until_ready"]
