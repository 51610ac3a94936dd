"""Taikun reconciler: converge Taikun platform entities to a desired state."""

from taikun_reconciler.client import Page, TaikunClient
from taikun_reconciler.errors import (
    AuthError,
    Cancelled,
    ConflictError,
    MalformedIdError,
    NotFound,
    NotFoundAfterOp,
    ReconcileError,
    Timeout,
    TransportError,
    UnexpectedState,
    ValidationError,
)
from taikun_reconciler.session import Session
from taikun_reconciler.settings import Settings, load_settings

__version__ = "0.1.0"

__all__ = [
    "AuthError",
    "Cancelled",
    "ConflictError",
    "MalformedIdError",
    "NotFound",
    "NotFoundAfterOp",
    "Page",
    "ReconcileError",
    "Session",
    "Settings",
    "TaikunClient",
    "Timeout",
    "TransportError",
    "UnexpectedState",
    "ValidationError",
    "load_settings",
]
