"""Logging configuration using structlog.

Everything is written to stderr because stdout carries the stdio MCP
transport. Credentials that can appear in error text (DSN passwords,
bearer tokens) are masked before rendering.
"""

import logging
import re
import sys
from typing import Any

import structlog

_LOG_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

_SECRET_PATTERNS = (
    (re.compile(r"(postgres(?:ql)?://[^:/@\s]+:)[^@\s]+@"), r"\1***@"),
    (re.compile(r"(password=)\S+", re.IGNORECASE), r"\1***"),
    (re.compile(r"(Bearer\s+)[\w.\-~+/]+=*", re.IGNORECASE), r"\1***"),
)


def redact(text: str) -> str:
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def redact_secrets(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor masking credentials in string values."""
    return {
        key: redact(value) if isinstance(value, str) else value
        for key, value in event_dict.items()
    }


class _LazyStderrFactory:
    """Resolve sys.stderr at logger creation time, not at configure() time.

    Under CliRunner tests a handle captured once goes stale when stderr
    is swapped between invocations.
    """

    def __call__(self, *args: Any, **kwargs: Any) -> structlog.PrintLogger:
        return structlog.PrintLogger(file=sys.stderr)


def setup_logging(verbose: bool = False) -> None:
    """Configure structlog for supabase-mcp.

    Args:
        verbose: If True, set log level to DEBUG. Otherwise INFO.
    """
    log_level = "debug" if verbose else "info"

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_secrets,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_LOG_LEVELS[log_level]),
        context_class=dict,
        logger_factory=_LazyStderrFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structlog logger, optionally bound with a name.

    Call inside functions, after setup_logging() has run.
    """
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger=name)
    return logger
