"""Exceptions raised by the reconciliation engine."""

from __future__ import annotations


class ReconciliationError(Exception):
    """Base class for reconciliation failures."""


class BlockchainTimeoutError(ReconciliationError):
    """A chain lookup did not answer within the configured timeout."""

    def __init__(self, entity_type: str, key: str, timeout: float) -> None:
        self.entity_type = entity_type
        self.key = key
        self.timeout = timeout
        super().__init__(
            f"Blockchain lookup for {entity_type} {key!r} timed out after {timeout:g}s"
        )
