"""Structured results returned by store mutations."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ServiceErrorCode(str, Enum):
    AUTH_REQUIRED = "auth_required"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    REMOTE = "remote"
    PARTIAL_WRITE = "partial_write"


@dataclass(slots=True)
class ServiceError:
    code: ServiceErrorCode
    message: str
    details: Any = None

    @classmethod
    def auth_required(cls) -> "ServiceError":
        return cls(ServiceErrorCode.AUTH_REQUIRED, "User not authenticated", "Login required")

    @classmethod
    def not_found(cls, message: str) -> "ServiceError":
        return cls(ServiceErrorCode.NOT_FOUND, message)

    @classmethod
    def validation(cls, message: str) -> "ServiceError":
        return cls(ServiceErrorCode.VALIDATION, message)

    @classmethod
    def remote(cls, message: str, details: Any = None) -> "ServiceError":
        return cls(ServiceErrorCode.REMOTE, message, details)

    @classmethod
    def from_exception(cls, exc: Exception, *, code: ServiceErrorCode = ServiceErrorCode.REMOTE) -> "ServiceError":
        return cls(code, str(exc) or exc.__class__.__name__, getattr(exc, "details", None))


@dataclass(slots=True)
class MutationResult(Generic[T]):
    """``data`` on success, ``error`` on failure; never both."""

    data: T | None = None
    error: ServiceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: T | None = None) -> "MutationResult[T]":
        return cls(data=data)

    @classmethod
    def failure(cls, error: ServiceError) -> "MutationResult[T]":
        return cls(error=error)


class ReactionKind(str, Enum):
    LIKE = "like"
    DISLIKE = "dislike"

    @property
    def opposite(self) -> "ReactionKind":
        return ReactionKind.DISLIKE if self is ReactionKind.LIKE else ReactionKind.LIKE


class ReactionState(str, Enum):
    NEUTRAL = "neutral"
    LIKED = "liked"
    DISLIKED = "disliked"


@dataclass(slots=True)
class ReactionResult:
    post_id: int
    state: ReactionState
    applied: bool = True
    error: ServiceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


__all__ = [
    "MutationResult",
    "ReactionKind",
    "ReactionResult",
    "ReactionState",
    "ServiceError",
    "ServiceErrorCode",
]
