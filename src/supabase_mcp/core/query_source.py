"""SQL text resolution for the ``query`` command.

Sources in precedence order: inline (``-e``), then a file path, then
piped stdin. Blank SQL is rejected whatever its source.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

from supabase_mcp.core.exceptions import InputError

if TYPE_CHECKING:
    from typing import TextIO


def _read_file(file_path: str) -> str:
    path = Path(file_path).expanduser()
    if not path.is_file():
        msg = (
            f"Query file not found: {file_path}\n"
            "Use -e for inline queries or pipe query via stdin."
        )
        raise InputError(msg)
    try:
        # utf-8-sig drops the BOM some editors write
        return path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        msg = f"Could not read query file {file_path}: {e}"
        raise InputError(msg) from e


def resolve_query_source(
    inline: str | None,
    file_path: str | None,
    stdin: TextIO | None = None,
) -> str:
    """Return the SQL to run.

    Raises InputError when no source is available, the file cannot be
    read, or the resolved text is blank.
    """
    stream = sys.stdin if stdin is None else stdin
    if inline is not None:
        sql, origin = inline, "inline query"
    elif file_path is not None:
        sql, origin = _read_file(file_path), file_path
    elif not stream.isatty():
        sql, origin = stream.read(), "stdin"
    else:
        msg = "No query provided. Use -e, file path, or pipe to stdin."
        raise InputError(msg)

    if not sql.strip():
        msg = f"Empty query from {origin}"
        raise InputError(msg)
    return sql
