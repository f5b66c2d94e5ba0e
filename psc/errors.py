"""Structured diagnostics and the exceptions that end a psc run.

Every failure the driver can report is one of four exceptions:
InputError (reading sources), ParseError (malformed source),
CompileError (semantic failure) and OutputError (writing results).
Parse and compile failures carry machine-readable Diagnostic objects.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    SYNTAX_ERROR = "syntax_error"
    NAME_ERROR = "name_error"
    MODULE_ERROR = "module_error"
    DECLARATION_ERROR = "declaration_error"
    ENTRY_POINT_ERROR = "entry_point_error"


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
    # Innermost first, e.g. ["value declaration main", "module Main"]
    context: list[str] = field(default_factory=list)

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
        if self.context:
            d["context"] = list(self.context)
        return d

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def render(self, verbose: bool = False) -> str:
        loc = f" at {self.location}" if self.location else ""
        text = f"Error{loc}: {self.message}"
        if verbose:
            for frame in self.context:
                text += f"\n  in {frame}"
        return text

    def __str__(self) -> str:
        return self.render()


def syntax_error(message: str, location: Optional[SourceLocation] = None) -> Diagnostic:
    return Diagnostic(kind=ErrorKind.SYNTAX_ERROR, message=message, location=location)


def name_error(
    name: str,
    location: Optional[SourceLocation] = None,
    context: Optional[list[str]] = None,
) -> Diagnostic:
    return Diagnostic(
        kind=ErrorKind.NAME_ERROR,
        message=f"Unknown value '{name}'",
        location=location,
        context=context or [],
    )


def module_error(
    message: str,
    location: Optional[SourceLocation] = None,
    context: Optional[list[str]] = None,
) -> Diagnostic:
    return Diagnostic(
        kind=ErrorKind.MODULE_ERROR,
        message=message,
        location=location,
        context=context or [],
    )


class PscError(Exception):
    """Base class for every error that terminates a run."""


class InputError(PscError):
    """A source file (or standard input) could not be read."""

    def __init__(self, path: Optional[str], reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Unable to read {path or '<stdin>'}: {reason}")


class OutputError(PscError):
    """An output directory or file could not be written."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Unable to write {path}: {reason}")


class DiagnosticError(PscError):
    """Exception wrapping one or more Diagnostics."""

    def __init__(self, errors: list[Diagnostic] | Diagnostic, verbose: bool = False):
        if isinstance(errors, Diagnostic):
            errors = [errors]
        self.errors = errors
        self.verbose = verbose
        super().__init__(self._format())

    def _format(self) -> str:
        return "\n".join(e.render(self.verbose) for e in self.errors)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps([e.to_dict() for e in self.errors], indent=indent)


class ParseError(DiagnosticError):
    """Malformed source text."""


class CompileError(DiagnosticError):
    """Semantic or code generation failure."""
