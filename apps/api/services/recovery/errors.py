"""
Domain errors raised by the recovery intake pipeline.

Routers translate these into APIException subclasses (core.exceptions).
Detection and extraction never raise; they degrade to conversation instead.
"""

from __future__ import annotations

from typing import List, Optional, Sequence


class RecoveryError(Exception):
    """Base class for recovery pipeline errors."""

    retryable: bool = False


class CatalogError(RecoveryError):
    """The exercise catalog file is missing, malformed, or an unsupported schema version."""


class UpstreamFailure(RecoveryError):
    """The generative collaborator errored, timed out, or returned nothing usable."""

    retryable = True

    def __init__(self, message: str, *, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ProtocolValidationFailed(RecoveryError):
    """A candidate protocol broke catalog/equipment rules. The candidate must not reach the caller."""

    def __init__(self, reasons: Sequence[str]):
        self.reasons: List[str] = list(reasons)
        super().__init__("; ".join(self.reasons) or "protocol rejected")


class UnknownExerciseError(RecoveryError):
    """An exercise name does not resolve to any catalog entry."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Exercise not in catalog: {name!r}")


class SubstitutionRejected(RecoveryError):
    """A requested swap would leave the body region or break the equipment preference."""

    def __init__(self, reasons: Sequence[str]):
        self.reasons: List[str] = list(reasons)
        super().__init__("; ".join(self.reasons) or "substitution rejected")
