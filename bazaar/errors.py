"""
bazaar.errors — Domain Error Taxonomy
======================================

Every store operation surfaces failures as one of these types so callers
can branch on them.  Getter-style reads return ``None`` for a missing row
instead of raising :class:`NotFoundError`.

Referential gaps (a display-name lookup that finds no backing row) are not
represented here: they are logged and recovered with a placeholder.
"""

from __future__ import annotations


class BazaarError(Exception):
    """Base exception for domain-layer errors."""


class NotFoundError(BazaarError):
    """The requested entity does not exist or does not belong to the caller."""

    def __init__(self, entity: str, key: str) -> None:
        super().__init__(f"{entity} not found: {key}")
        self.entity = entity
        self.key = key


class ValidationFailedError(BazaarError):
    """Malformed input reached the store layer."""


class TransactionAbortedError(BazaarError):
    """A statement inside a transaction failed.

    The transaction has already been rolled back when this is raised.
    """


class ResourceExhaustedError(BazaarError):
    """The connection pool could not supply a connection in time."""


class OperationTimeoutError(BazaarError):
    """The operation ran past its deadline and was rolled back."""
