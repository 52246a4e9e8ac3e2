"""Error type shared by every chimpflow component.

A single exception class tagged with an ``ErrorKind`` replaces a per-category
class hierarchy. Handlers branch on ``error.kind`` instead of ``isinstance``
chains.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Categories of failure."""
    API = "api"                # external service call failed or is unavailable
    PLUGIN = "plugin"          # plugin/extension hook failed
    VALIDATION = "validation"  # bad or missing input
    CONFIG = "config"          # configuration could not be loaded or is invalid
    PLATFORM = "platform"      # chat platform object is missing required fields
    STORAGE = "storage"        # knowledge file could not be written


@dataclass
class ErrorDetails:
    """Payload carried by every ChimpflowError."""
    code: str = "UNKNOWN_ERROR"
    component: str = "unknown"
    operation: str = "unknown"
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())


class ChimpflowError(Exception):
    """Tagged error raised across chimpflow."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        code: Optional[str] = None,
        component: str = "unknown",
        operation: str = "unknown",
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = ErrorDetails(
            code=code or f"{kind.value.upper()}_ERROR",
            component=component,
            operation=operation,
            context=context or {},
        )
        if cause is not None:
            self.__cause__ = cause

    @property
    def code(self) -> str:
        return self.details.code

    @property
    def cause(self) -> Optional[BaseException]:
        return self.__cause__

    def to_dict(self) -> Dict[str, Any]:
        """Structured representation for logging."""
        cause = self.cause
        if isinstance(cause, ChimpflowError):
            cause_repr: Any = cause.to_dict()
        elif cause is not None:
            cause_repr = str(cause)
        else:
            cause_repr = None

        return {
            "kind": self.kind.value,
            "message": self.message,
            "code": self.details.code,
            "component": self.details.component,
            "operation": self.details.operation,
            "context": self.details.context,
            "timestamp": self.details.timestamp,
            "cause": cause_repr,
        }

    def user_message(self) -> str:
        """A sentence that is safe to show to chat users."""
        match self.kind:
            case ErrorKind.API:
                return "An external service I rely on is not responding right now."
            case ErrorKind.PLUGIN:
                return "One of my extensions ran into a problem."
            case ErrorKind.VALIDATION:
                return "I couldn't understand that request."
            case ErrorKind.CONFIG:
                return "I'm not configured correctly for that yet."
            case ErrorKind.PLATFORM:
                return "I couldn't read that message."
            case ErrorKind.STORAGE:
                return "I couldn't save what I learned."

    def __str__(self) -> str:
        return (
            f"{self.kind.value} [{self.details.code}]: {self.message} "
            f"({self.details.component}/{self.details.operation})"
        )
