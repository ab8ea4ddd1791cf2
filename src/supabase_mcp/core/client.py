"""Database clients for supabase-mcp.

Two interchangeable strategies share one contract, ``query(sql, params)``:

- DirectClient wraps psycopg v3 async connections with statement timeout
  and exception mapping to the SupabaseMcpError hierarchy. It can also
  hand out a session that shares one connection across several queries.
- RemoteClient posts SQL to the Management API query endpoint over HTTPS.
  It has no connection to share, so ``session()`` fails fast.

SQL passed to either client uses psycopg placeholders (``%(name)s`` or
``%s``). RemoteClient rewrites them to ``$n`` before sending.
"""

from __future__ import annotations

import re
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx
import psycopg
import psycopg.errors
import sentry_sdk
import structlog
from psycopg.rows import dict_row

from supabase_mcp.core.config import DatabaseMode
from supabase_mcp.core.exceptions import (
    ConfigError,
    DatabaseError,
    NetworkError,
    SessionUnsupportedError,
    TimeoutError,
)
from supabase_mcp.core.models import ColumnMeta, QueryResult

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from supabase_mcp.core.config import DirectSettings, RemoteSettings, Settings

# Mapping from psycopg type OIDs to human-readable names.
# Covers the most common PostgreSQL types; unknown OIDs fall back to "unknown".
_TYPE_NAMES: dict[int, str] = {
    16: "bool",
    17: "bytea",
    20: "int8",
    21: "int2",
    23: "int4",
    25: "text",
    26: "oid",
    114: "json",
    142: "xml",
    700: "float4",
    701: "float8",
    790: "money",
    1042: "bpchar",
    1043: "varchar",
    1082: "date",
    1083: "time",
    1114: "timestamp",
    1184: "timestamptz",
    1186: "interval",
    1700: "numeric",
    2950: "uuid",
    3802: "jsonb",
}


@runtime_checkable
class QueryRunner(Protocol):
    """Anything that can run one parameterized statement."""

    async def query(self, sql: str, params: Any = None) -> QueryResult: ...


@runtime_checkable
class DatabaseClient(QueryRunner, Protocol):
    """Connection strategy selected once at startup."""

    supports_sessions: bool

    def session(self) -> Any:
        """Return an async context manager yielding a QueryRunner."""
        ...


def _normalize(sql: str) -> str:
    return " ".join(sql.split())


def _command_tag(status_message: str | None) -> str | None:
    if not status_message:
        return None
    return status_message.split(" ", 1)[0]


class DirectSession:
    """One open connection shared by every query of a single tool call."""

    def __init__(self, connection: psycopg.AsyncConnection[Any]) -> None:
        self.connection = connection

    async def query(self, sql: str, params: Any = None) -> QueryResult:
        return await _execute(self.connection, sql, params)


async def _execute(
    conn: psycopg.AsyncConnection[Any], sql: str, params: Any = None
) -> QueryResult:
    log = structlog.get_logger()
    sql_normalized = _normalize(sql)
    log.debug("executing query", sql=sql_normalized)
    with sentry_sdk.start_span(op="db.query", description=sql_normalized[:100]) as span:
        start_time = time.monotonic()
        try:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(sql, params)

                columns: list[ColumnMeta] | None = None
                rows: list[dict[str, Any]] = []
                if cur.description:
                    columns = [
                        ColumnMeta(
                            name=desc.name,
                            type_oid=desc.type_code,
                            type_name=_TYPE_NAMES.get(desc.type_code, "unknown"),
                        )
                        for desc in cur.description
                    ]
                    rows = await cur.fetchall()

                row_count = cur.rowcount if cur.rowcount >= 0 else len(rows)
                duration_ms = (time.monotonic() - start_time) * 1000
                span.set_data("row_count", row_count)
                span.set_data("duration_ms", duration_ms)
                log.debug(
                    "query complete",
                    duration_ms=f"{duration_ms:.1f}",
                    row_count=row_count,
                )
                return QueryResult(
                    rows=rows,
                    row_count=row_count,
                    command=_command_tag(cur.statusmessage),
                    columns=columns,
                )

        except psycopg.errors.QueryCanceled as e:
            span.set_status("deadline_exceeded")
            log.error("query timeout", sql=sql_normalized)
            raise TimeoutError(f"Query timed out: {e}") from e
        except psycopg.OperationalError as e:
            span.set_status("unavailable")
            log.error("database error", sql=sql_normalized, error=str(e))
            raise NetworkError(f"Database error: {e}") from e
        except psycopg.Error as e:
            span.set_status("invalid_argument")
            log.error("query error", sql=sql_normalized, error=str(e))
            raise DatabaseError(str(e).strip()) from e


class DirectClient:
    """Direct Postgres connection using psycopg v3.

    Every ``query()`` opens its own connection and closes it on every exit
    path. ``session()`` keeps one connection open for the duration of the
    ``async with`` block.
    """

    supports_sessions = True

    def __init__(self, settings: DirectSettings, query_timeout: float = 30.0) -> None:
        self.settings = settings
        self.query_timeout = query_timeout

    async def _connect(self) -> psycopg.AsyncConnection[Any]:
        try:
            conn = await psycopg.AsyncConnection.connect(
                self.settings.connection_string,
                autocommit=True,
                **self.settings.connect_kwargs(),
            )
        except psycopg.OperationalError as e:
            raise NetworkError(f"Connection failed: {e}") from e

        timeout_ms = int(self.query_timeout * 1000)
        try:
            await conn.execute(f"SET statement_timeout = {timeout_ms}")
        except psycopg.Error as e:
            await conn.close()
            raise NetworkError(f"Connection setup failed: {e}") from e
        return conn

    async def query(self, sql: str, params: Any = None) -> QueryResult:
        conn = await self._connect()
        try:
            return await _execute(conn, sql, params)
        finally:
            await conn.close()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[DirectSession]:
        conn = await self._connect()
        try:
            yield DirectSession(conn)
        finally:
            await conn.close()


_PLACEHOLDER_RE = re.compile(r"%\((\w+)\)s|%s|%%")


def to_positional(sql: str, params: Any = None) -> tuple[str, list[Any] | None]:
    """Rewrite psycopg placeholders as ``$n`` and flatten the parameters.

    Named placeholders reuse one position per distinct name. Without
    parameters the text is passed through untouched.
    """
    if params is None:
        return sql, None

    values: list[Any] = []
    if isinstance(params, dict):
        positions: dict[str, int] = {}

        def _named(match: re.Match[str]) -> str:
            token = match.group(0)
            if token == "%%":
                return "%"
            name = match.group(1)
            if name is None:
                msg = "Positional placeholder used with named parameters"
                raise DatabaseError(msg)
            if name not in params:
                msg = f"Missing query parameter: '{name}'"
                raise DatabaseError(msg)
            if name not in positions:
                values.append(params[name])
                positions[name] = len(values)
            return f"${positions[name]}"

        return _PLACEHOLDER_RE.sub(_named, sql), values

    sequence = list(params)

    def _positional(match: re.Match[str]) -> str:
        token = match.group(0)
        if token == "%%":
            return "%"
        if match.group(1) is not None:
            msg = "Named placeholder used with positional parameters"
            raise DatabaseError(msg)
        if len(values) >= len(sequence):
            msg = "Not enough query parameters for placeholders"
            raise DatabaseError(msg)
        values.append(sequence[len(values)])
        return f"${len(values)}"

    return _PLACEHOLDER_RE.sub(_positional, sql), values


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if message:
            return str(message)
    return response.text or response.reason_phrase


class RemoteClient:
    """SQL over HTTPS through the Management API query endpoint."""

    supports_sessions = False

    def __init__(
        self,
        settings: RemoteSettings,
        query_timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.query_timeout = query_timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"/v1/projects/{self.settings.project_ref}/database/query"

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.api_url,
            headers={
                "Authorization": f"Bearer {self.settings.access_token}",
                "Content-Type": "application/json",
            },
            timeout=self.query_timeout,
            transport=self._transport,
        )

    async def query(self, sql: str, params: Any = None) -> QueryResult:
        log = structlog.get_logger()
        text, positional = to_positional(sql, params)
        payload: dict[str, Any] = {"query": text, "read_only": False}
        if positional is not None:
            payload["parameters"] = positional

        log.debug("executing remote query", sql=_normalize(text))
        start_time = time.monotonic()
        async with self._http() as http:
            try:
                response = await http.post(self.endpoint, json=payload)
            except httpx.TimeoutException as e:
                log.error("remote query timeout", sql=_normalize(text))
                msg = f"Management API error: request timed out ({e})"
                raise TimeoutError(msg) from e
            except httpx.HTTPError as e:
                log.error("remote query failed", error=str(e))
                msg = f"Management API error: {e} (network error)"
                raise NetworkError(msg) from e

        if response.is_error:
            message = _error_message(response)
            log.error(
                "remote query error", status=response.status_code, error=message
            )
            msg = f"Management API error: {message} ({response.status_code})"
            raise DatabaseError(msg, status=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            msg = f"Management API error: invalid JSON response ({response.status_code})"
            raise DatabaseError(msg, status=response.status_code) from e
        rows = body if isinstance(body, list) else body.get("result", [])
        log.debug(
            "remote query complete",
            duration_ms=f"{(time.monotonic() - start_time) * 1000:.1f}",
            row_count=len(rows),
        )
        return QueryResult(rows=rows)

    def session(self) -> Any:
        msg = (
            "Sessions require postgres mode. Current mode: "
            f"{DatabaseMode.REMOTE.value}"
        )
        raise SessionUnsupportedError(msg)


@asynccontextmanager
async def open_runner(client: DatabaseClient) -> AsyncIterator[QueryRunner]:
    """Yield a shared session when the client supports one, else the client."""
    if client.supports_sessions:
        async with client.session() as session:
            yield session
    else:
        yield client


def create_database_client(settings: Settings) -> DirectClient | RemoteClient:
    """Select the connection strategy from configuration."""
    if settings.database_mode is DatabaseMode.DIRECT:
        if settings.direct is None:
            raise ConfigError("Direct database settings are missing")
        return DirectClient(settings.direct, settings.query_timeout)
    if settings.remote is None:
        raise ConfigError("Management API settings are missing")
    return RemoteClient(settings.remote, settings.query_timeout)
