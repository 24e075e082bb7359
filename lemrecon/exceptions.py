"""Error types raised by lemrecon operations.

Expected domain findings (overlaps, gaps, variances, unmatched entries) are
returned as values. Only operator-input failures and store failures raise.
"""

from __future__ import annotations

from collections.abc import Iterable


class LemReconError(Exception):
    """Base class for all lemrecon errors."""


class ValidationError(LemReconError):
    """Operator input rejected. Nothing was written."""


class NotFoundError(LemReconError):
    """Referenced record does not exist."""

    def __init__(self, entity: str, entity_id: object) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found")


class PersistenceError(LemReconError):
    """The record store call itself failed.

    For multi-record operations ``applied`` lists what was written before the
    failure and ``pending`` what was not.
    """

    def __init__(
        self,
        message: str,
        applied: Iterable[str] = (),
        pending: Iterable[str] = (),
    ) -> None:
        self.applied = list(applied)
        self.pending = list(pending)
        super().__init__(message)

    @property
    def partially_applied(self) -> bool:
        return bool(self.applied)


class PartialFinalizeError(PersistenceError):
    """Invoice exists but some field logs were not moved to invoiced."""

    def __init__(
        self,
        message: str,
        invoice_id: str,
        applied: Iterable[str] = (),
        pending: Iterable[str] = (),
    ) -> None:
        self.invoice_id = invoice_id
        super().__init__(message, applied=applied, pending=pending)
