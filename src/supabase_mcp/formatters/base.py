"""Formatter protocol and name registry.

Formatter modules register themselves with ``@registry.register(name)``;
importing ``supabase_mcp.formatters`` populates the global registry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from supabase_mcp.core.models import QueryResult


@runtime_checkable
class Formatter(Protocol):
    """Turns a QueryResult into output lines."""

    def format(self, result: QueryResult) -> Iterator[str]: ...


F = TypeVar("F", bound=type)


class FormatterRegistry:
    def __init__(self) -> None:
        self._formatters: dict[str, type[Formatter]] = {}

    def register(self, name: str) -> Callable[[F], F]:
        """Class decorator adding a formatter under ``name``."""

        def decorate(cls: F) -> F:
            if name in self._formatters:
                msg = f"Formatter {name!r} is already registered"
                raise ValueError(msg)
            self._formatters[name] = cls
            return cls

        return decorate

    def __contains__(self, name: object) -> bool:
        return name in self._formatters

    def get(self, name: str, **kwargs: Any) -> Formatter:
        """Instantiate the formatter registered under ``name``.

        Raises KeyError listing the available names when unknown.
        """
        try:
            cls = self._formatters[name]
        except KeyError:
            msg = f"Unknown format {name!r}. Available: {', '.join(self.available)}"
            raise KeyError(msg) from None
        return cls(**kwargs)

    @property
    def available(self) -> list[str]:
        return sorted(self._formatters)


def column_names(result: QueryResult) -> list[str]:
    """Column order from metadata when present, else from the first row."""
    if result.columns:
        return [col.name for col in result.columns]
    if result.rows:
        return list(result.rows[0].keys())
    return []


def serialize_value(val: Any) -> Any:
    if isinstance(val, (int, float, str, bool, type(None), list, dict)):
        return val
    return str(val)


registry = FormatterRegistry()
