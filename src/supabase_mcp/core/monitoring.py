"""Sentry integration for error tracking and performance monitoring.

Enabled only when SENTRY_DSN is configured. Initialized in the entry
point right after logging setup.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import sentry_sdk

from supabase_mcp.__about__ import __version__

if TYPE_CHECKING:
    from supabase_mcp.core.config import Settings


def setup_sentry(settings: Settings) -> bool:
    """Initialize Sentry from settings. Returns False when no DSN is set."""
    if not settings.sentry_dsn:
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        traces_sample_rate=0.03,
        environment=settings.sentry_environment,
        release=__version__,
        attach_stacktrace=True,
        send_default_pii=False,
    )
    return True
