"""Exception hierarchy for supabase-mcp.

All exceptions carry an exit_code for CLI return value mapping. Tool
handlers never let these escape: the registry turns them into error
payloads.
"""

from __future__ import annotations

from supabase_mcp.core.exit_codes import ExitCode


class SupabaseMcpError(Exception):
    """Base exception for all supabase-mcp errors."""

    exit_code: int = ExitCode.GENERAL_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigError(SupabaseMcpError):
    """Missing or malformed startup configuration."""

    exit_code: int = ExitCode.CONFIG_ERROR


class InputError(SupabaseMcpError):
    """Invalid tool arguments, unreadable local file."""

    exit_code: int = ExitCode.INPUT_ERROR


class DatabaseError(SupabaseMcpError):
    """SQL error reported by the driver or the remote execution endpoint."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class NetworkError(DatabaseError):
    """Connection failures, unreachable host or endpoint."""

    exit_code: int = ExitCode.NETWORK_ERROR


class TimeoutError(NetworkError):
    """Statement timeout, HTTP timeout."""

    exit_code: int = ExitCode.TIMEOUT


class SessionUnsupportedError(DatabaseError):
    """A shared session was requested from a client that has no connection."""


class StorageError(SupabaseMcpError):
    """Non-2xx response or transport failure from the storage API."""

    exit_code: int = ExitCode.STORAGE_ERROR

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status
