"""
Raised faults of the core.

Expected, recoverable outcomes (duplicates, allocation limits, invalid input)
are returned as result DTOs instead. Everything here carries structured
context (resource, step) so a caller can retry or escalate.
"""

from __future__ import annotations


class PolicyLedgerError(Exception):
    """Base exception for all raised core errors."""

    def __init__(
        self,
        message: str,
        *,
        resource: str | None = None,
        step: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.resource = resource
        self.step = step
        self.details = details or {}
        super().__init__(message)


class PersistenceError(PolicyLedgerError):
    """A store read or write failed or timed out. Not retried internally."""


class PartialRemovalFailure(PolicyLedgerError):
    """A detach cascade stopped part-way. Re-running the detach is safe."""

    def __init__(
        self,
        message: str,
        *,
        relationship_id: str,
        failed_resource: str,
        completed_steps: tuple[str, ...] = (),
        **kwargs,
    ) -> None:
        self.relationship_id = relationship_id
        self.failed_resource = failed_resource
        self.completed_steps = completed_steps
        kwargs.setdefault("resource", failed_resource)
        super().__init__(message, **kwargs)


class NumberGenerationExhausted(PolicyLedgerError):
    """No unused contract number was found within the attempt budget."""

    def __init__(self, message: str, *, attempts: int = 0, **kwargs) -> None:
        self.attempts = attempts
        super().__init__(message, **kwargs)
