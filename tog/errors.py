"""Structured error objects for the TOG toolchain.

Every failure is a ``TogError`` exception carrying one ``Diagnostic``: an
error kind, a human-readable message, an optional source location and a
details dict with the offending name/type/arity. Diagnostics serialize to
JSON for tooling.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    LEX_ERROR = "LexError"
    PARSE_ERROR = "ParseError"
    TRAIT_CONFORMANCE_ERROR = "TraitConformanceError"
    NAME_ERROR = "NameError"
    TYPE_ERROR = "TypeError"
    ARITY_ERROR = "ArityError"
    MATCH_ERROR = "MatchError"
    DISPATCH_ERROR = "DispatchError"
    METHOD_NOT_FOUND_ERROR = "MethodNotFoundError"
    PANIC_ERROR = "PanicError"
    RUNTIME_ERROR = "RuntimeError"


@dataclass
class SourceLocation:
    line: int
    column: int
    file: str = "<stdin>"

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


@dataclass
class Diagnostic:
    kind: ErrorKind
    message: str
    location: Optional[SourceLocation] = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.location:
            d["location"] = {
                "file": self.location.file,
                "line": self.location.line,
                "column": self.location.column,
            }
        if self.details:
            d["details"] = self.details
        return d

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def __str__(self) -> str:
        loc = f" at {self.location}" if self.location else ""
        return f"[{self.kind.value}]{loc}: {self.message}"


class TogError(Exception):
    """Base exception; wraps exactly one Diagnostic."""

    kind = ErrorKind.RUNTIME_ERROR

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.diagnostic = Diagnostic(
            kind=self.kind,
            message=message,
            location=location,
            details=details or {},
        )
        super().__init__(str(self.diagnostic))

    @property
    def message(self) -> str:
        return self.diagnostic.message

    @property
    def location(self) -> Optional[SourceLocation]:
        return self.diagnostic.location

    @property
    def details(self) -> dict[str, Any]:
        return self.diagnostic.details

    def to_json(self, indent: int = 2) -> str:
        return self.diagnostic.to_json(indent=indent)


# ---------------------------------------------------------------------------
# Compile-time errors (abort the whole unit)
# ---------------------------------------------------------------------------

class LexError(TogError):
    kind = ErrorKind.LEX_ERROR


class ParseError(TogError):
    kind = ErrorKind.PARSE_ERROR

    def __init__(self, expected: str, found: str, location: Optional[SourceLocation] = None):
        super().__init__(
            f"Expected {expected}, found {found}",
            location,
            {"expected": expected, "found": found},
        )


class TraitConformanceError(TogError):
    kind = ErrorKind.TRAIT_CONFORMANCE_ERROR


# ---------------------------------------------------------------------------
# Evaluation-time errors (abort the run)
# ---------------------------------------------------------------------------

class TogNameError(TogError):
    kind = ErrorKind.NAME_ERROR


class TogTypeError(TogError):
    kind = ErrorKind.TYPE_ERROR


class ArityError(TogError):
    kind = ErrorKind.ARITY_ERROR


class MatchError(TogError):
    kind = ErrorKind.MATCH_ERROR


class DispatchError(TogError):
    kind = ErrorKind.DISPATCH_ERROR


class MethodNotFoundError(TogError):
    kind = ErrorKind.METHOD_NOT_FOUND_ERROR


class PanicError(TogError):
    kind = ErrorKind.PANIC_ERROR


class TogRuntimeError(TogError):
    kind = ErrorKind.RUNTIME_ERROR


def undefined_name(name: str, location: Optional[SourceLocation] = None) -> TogNameError:
    return TogNameError(f"Undefined name '{name}'", location, {"name": name})


def arity_mismatch(
    callee: str,
    expected: int | str,
    actual: int,
    location: Optional[SourceLocation] = None,
) -> ArityError:
    return ArityError(
        f"'{callee}' expects {expected} argument(s), got {actual}",
        location,
        {"callee": callee, "expected": expected, "actual": actual},
    )
