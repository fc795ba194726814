from __future__ import annotations

from typing import Optional


class SparqledError(RuntimeError):
    """Base class for all errors raised by sparqled."""


class ConfigError(SparqledError):
    """Raised when the sparqled configuration is missing or invalid."""


class ParseError(SparqledError):
    """
    Raised when the input query is malformed or uses an unsupported construct.

    A parse error is fatal for the completion request: the Scope that was being
    populated must not be used afterwards.
    """

    def __init__(
        self,
        message: str,
        position: int = 0,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ) -> None:
        self.message = message
        self.position = position
        self.line = line
        self.column = column
        if line is not None and column is not None:
            super().__init__(f"{message} (line {line}, column {column})")
        else:
            super().__init__(f"{message} (offset {position})")


class UnresolvedPrefixError(ParseError):
    """Raised when a prefixed name uses a label that was never declared."""

    def __init__(
        self,
        prefix: str,
        position: int = 0,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ) -> None:
        self.prefix = prefix
        super().__init__(f"Unresolved prefix '{prefix}:'", position, line, column)


class EndpointError(SparqledError):
    """Raised when the SPARQL endpoint cannot be reached or answers with an error."""

    def __init__(
        self,
        message: str,
        endpoint_url: str = "",
        status_code: Optional[int] = None,
    ) -> None:
        self.endpoint_url = endpoint_url
        self.status_code = status_code
        super().__init__(message)


class DegenerateResultError(SparqledError):
    """Raised when a ranking pass produced no candidates to aggregate."""


__all__ = [
    "SparqledError",
    "ConfigError",
    "ParseError",
    "UnresolvedPrefixError",
    "EndpointError",
    "DegenerateResultError",
]
