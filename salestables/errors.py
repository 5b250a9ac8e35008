# errors.py
# -------------------------
# Table errors
# Every error a render can raise is detected before any output is written,
# so callers may fix the table definition and try again.
# -------------------------

from typing import Any, Optional


class TableError(Exception):
    """Base class for all table errors."""


class UnknownColumnError(TableError, KeyError):
    """A directive (or group key) names a column the final data does not have."""

    def __init__(self, column: str, position: Optional[int] = None, directive: Optional[str] = None):
        self.column = column
        self.position = position
        self.directive = directive
        if position is not None:
            msg = f"Directive #{position} ({directive}) references unknown column '{column}'"
        else:
            msg = f"Unknown column '{column}'"
        super().__init__(msg)

    def __str__(self) -> str:
        # KeyError would repr() the message
        return self.args[0]


class InvalidReduction(TableError, ValueError):
    """A reduction is unknown, or incompatible with its source column."""


class EmptyGroupError(TableError):
    """A group has no rows and the caller asked for empty groups to be rejected."""

    def __init__(self, keys: Any):
        self.keys = keys
        super().__init__(f"Empty group(s): {keys}")


class SpannerError(TableError):
    """A spanner is not contiguous or nests more than one level deep."""


class OverlappingSpannerError(SpannerError):
    """Two spanners on the same level share a leaf column."""

    def __init__(self, first: str, second: str, columns):
        self.first = first
        self.second = second
        self.columns = tuple(columns)
        super().__init__(
            f"Spanners '{first}' and '{second}' overlap on column(s): " + ", ".join(self.columns)
        )


class TypeMismatchError(TableError, TypeError):
    """A column format was applied to a value of an incompatible type."""

    def __init__(self, kind: str, value: Any, column: Optional[str] = None):
        self.kind = kind
        self.value = value
        self.column = column
        where = f" in column '{column}'" if column else ""
        super().__init__(f"Cannot apply '{kind}' format to {type(value).__name__} value {value!r}{where}")


class EmptyTableError(TableError):
    """Render was called on a table with no rows."""
