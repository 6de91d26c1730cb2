"""
Enrollment Result Types

Every engine operation returns an Outcome instead of raising. Failures carry
a stable error code that the HTTP layer maps to a status code and message.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class ErrorCode(str, Enum):
    SESSION_NOT_FOUND = "SessionNotFound"
    SESSION_NOT_JOINABLE = "SessionNotJoinable"
    SESSION_FULL = "SessionFull"
    FEATURE_DISABLED = "FeatureDisabled"
    ALREADY_ENROLLED = "AlreadyEnrolled"
    NOT_ENROLLED = "NotEnrolled"
    INVALID_CAPACITY = "InvalidCapacity"
    INVALID_TRANSITION = "InvalidTransition"
    NOT_PERMITTED = "NotPermitted"
    INVALID_SESSION = "InvalidSession"


@dataclass(frozen=True)
class Failure:
    code: ErrorCode
    message: str
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


@dataclass
class Outcome(Generic[T]):
    """Result of an engine operation: a value or a typed failure, plus warnings"""
    value: Optional[T] = None
    error: Optional[Failure] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def code(self) -> Optional[ErrorCode]:
        return self.error.code if self.error else None

    @classmethod
    def success(cls, value: T = None, warnings: Optional[List[str]] = None) -> "Outcome[T]":
        return cls(value=value, warnings=list(warnings or []))

    @classmethod
    def failure(
        cls,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> "Outcome[T]":
        return cls(error=Failure(code=code, message=message, details=details))
