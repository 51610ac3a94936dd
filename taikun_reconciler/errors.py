"""Structured exceptions for the Taikun reconciler.

Every error carries ``kind``, ``message`` and an optional ``underlying``
exception. The CLI maps each kind to an exit code.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ReconcileError(Exception):
    """Base exception for all reconciler errors."""

    kind = "error"
    exit_code = 2

    def __init__(self, message: str, *, underlying: Optional[BaseException] = None) -> None:
        self.message = message
        self.underlying = underlying
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.underlying is not None:
            out["underlying"] = repr(self.underlying)
        return out


class AuthError(ReconcileError):
    """Login or refresh failed, or the session cannot be recovered."""

    kind = "auth"
    exit_code = 3


class ValidationError(ReconcileError):
    """Desired state violates a static invariant (schema, regex, enum)."""

    kind = "validation"
    exit_code = 1

    def __init__(self, message: str, path: str = "", *, underlying: Optional[BaseException] = None) -> None:
        self.path = path
        text = f"{path}: {message}" if path else message
        super().__init__(text, underlying=underlying)
        self.message = message

    def __str__(self) -> str:
        return f"{self.path}: {self.message}" if self.path else self.message

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["path"] = self.path
        return out


class MalformedIdError(ValidationError):
    """An entity or composite id failed to parse."""

    kind = "malformed_id"


class TransportError(ReconcileError):
    """Network failure or non-2xx response not classified elsewhere."""

    kind = "transport"
    exit_code = 2

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
        request_id: Optional[str] = None,
        *,
        underlying: Optional[BaseException] = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.request_id = request_id
        if status_code is not None:
            text = f"[{status_code}] {message}"
            if body not in (None, "", {}):
                text = f"{text}: {body}"
        else:
            text = message
        super().__init__(text, underlying=underlying)

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["status_code"] = self.status_code
        if self.request_id:
            out["request_id"] = self.request_id
        return out


class NotFound(TransportError):
    """The platform returned zero results where one was expected."""

    kind = "not_found"


class NotFoundAfterOp(NotFound):
    """Entity not yet visible after create or update; retried by read_after_op."""

    kind = "not_found_after_op"


class UnexpectedState(ReconcileError):
    """A poll observed a state outside the allowed and target sets."""

    kind = "unexpected_state"

    def __init__(self, message: str, state: Any = None) -> None:
        self.state = state
        super().__init__(message)


class Timeout(ReconcileError):
    """A retry or wait budget elapsed."""

    kind = "timeout"
    exit_code = 4


class ConflictError(ReconcileError):
    """Mutation rejected because the entity is locked and could not be unlocked."""

    kind = "conflict"


class Cancelled(ReconcileError):
    """The operation was cancelled by the caller."""

    kind = "cancelled"
    exit_code = 130
