"""Typed outcome for persistence reads."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class LookupStatus(str, Enum):
    """How a read ended."""

    FOUND = "found"
    ABSENT = "absent"  # query succeeded, no row
    INVALID = "invalid"  # row exists but does not match the expected shape
    FAILED = "failed"  # the database call itself failed


@dataclass(frozen=True)
class Lookup(Generic[T]):
    """
    Result of a single-record read.

    Callers branch on ``status`` instead of mixing exceptions with ``None``.

    Example:
        >>> result = ProfileService().get_profile(user_id)
        >>> if result.status is LookupStatus.FOUND:
        ...     use(result.value)
    """

    status: LookupStatus
    value: T | None = None
    error: Exception | None = None

    @classmethod
    def found(cls, value: T) -> Lookup[T]:
        return cls(LookupStatus.FOUND, value=value)

    @classmethod
    def absent(cls) -> Lookup[T]:
        return cls(LookupStatus.ABSENT)

    @classmethod
    def invalid(cls, error: Exception) -> Lookup[T]:
        return cls(LookupStatus.INVALID, error=error)

    @classmethod
    def failed(cls, error: Exception) -> Lookup[T]:
        return cls(LookupStatus.FAILED, error=error)

    @property
    def is_found(self) -> bool:
        return self.status is LookupStatus.FOUND

    @property
    def is_absent(self) -> bool:
        return self.status is LookupStatus.ABSENT

    @property
    def is_error(self) -> bool:
        """True for INVALID and FAILED."""
        return self.status in (LookupStatus.INVALID, LookupStatus.FAILED)
