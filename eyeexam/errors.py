"""
Error taxonomy for the examination core.

ValidationError and NotFoundError are recoverable user-facing outcomes,
PartialAggregationError carries a degraded snapshot, TransportError covers
network failures, timeouts and 5xx responses.
"""
from typing import Dict, Iterable, Optional


class ExaminationError(Exception):
    """Base class for every error raised by the examination core."""


class ValidationError(ExaminationError):
    """One or more required fields are missing or malformed."""

    def __init__(self, errors: Dict[str, str], kind: Optional[str] = None):
        self.errors = dict(errors)
        self.kind = kind
        fields = ", ".join(sorted(self.errors))
        prefix = f"{kind}: " if kind else ""
        super().__init__(f"{prefix}invalid or missing field(s): {fields}")

    @property
    def fields(self) -> list[str]:
        return sorted(self.errors)


class NotFoundError(ExaminationError):
    def __init__(self, kind: str, record_id=None, message: Optional[str] = None):
        self.kind = kind
        self.record_id = record_id
        super().__init__(message or f"{kind} record {record_id!r} not found")


class PartialAggregationError(ExaminationError):
    """Raised when some sub-record kinds could not be fetched.

    The snapshot built from the kinds that did load is attached so callers
    can still render it; missing kinds are indistinguishable from empty ones.
    """

    def __init__(self, failed_kinds: Iterable[str], snapshot=None, causes: Optional[Dict[str, Exception]] = None):
        self.failed_kinds = frozenset(failed_kinds)
        self.snapshot = snapshot
        self.causes = dict(causes or {})
        super().__init__(f"could not fetch: {', '.join(sorted(self.failed_kinds))}")


class TransportError(ExaminationError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
