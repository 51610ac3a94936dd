"""Implementations behind the CLI subcommands."""

from __future__ import annotations

from taikun_reconciler.log import configure_logging
from taikun_reconciler.session import Session
from taikun_reconciler.settings import load_settings


def open_session(verbose: bool = False) -> Session:
    """Configure logging and build a session from the environment."""
    settings = load_settings()
    configure_logging("DEBUG" if verbose else settings.log_level, settings.log_format)
    return Session.from_settings(settings)
