"""psc driver — one compilation run from inputs to exit code.

    inputs read -> parsed -> compiled -> outputs written -> exit 0

Any failure prints its diagnostic to the error stream and ends the run with
exit code 1. There is exactly one parse and one compile per run.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Optional, TextIO, Union

from psc.compiler import compile_modules, parse_modules
from psc.errors import CompileError, InputError, OutputError, ParseError
from psc.inputs import SourceUnit, input_spec, resolve_inputs
from psc.options import CompilerOptions, DriverOptions
from psc.output import route

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class Stage(Enum):
    READ = "read"
    PARSE = "parse"
    COMPILE = "compile"
    WRITE = "write"


@dataclass(frozen=True)
class Success:
    js: str
    externs: str


@dataclass(frozen=True)
class Failure:
    diagnostic: str
    stage: Stage


RunOutcome = Union[Success, Failure]


def prefix_lines(use_prefix: bool, version: str) -> list[str]:
    """Header lines for the generated code."""
    if not use_prefix:
        return []
    return [f"Generated by psc version {version}"]


def compile_sources(
    options: CompilerOptions,
    units: list[SourceUnit],
    prefix: list[str],
) -> RunOutcome:
    """Parse and compile source units. Pure: no I/O, no global state."""
    try:
        modules = parse_modules([(unit.origin, unit.text) for unit in units])
    except ParseError as e:
        return Failure(str(e), Stage.PARSE)
    logger.debug("parsed %d module(s)", len(modules))

    try:
        js, externs = compile_modules(options, modules, prefix)
    except CompileError as e:
        return Failure(str(e), Stage.COMPILE)
    return Success(js, externs)


def _fail(failure: Failure, err: TextIO) -> int:
    logger.debug("%s stage failed", failure.stage.value)
    print(failure.diagnostic, file=err)
    return EXIT_FAILURE


def run(
    driver_options: DriverOptions,
    version: str,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
) -> int:
    """Run one compilation and return the process exit code."""
    err = stderr if stderr is not None else sys.stderr
    options = driver_options.options

    spec = input_spec(driver_options.use_stdin, driver_options.input_files)
    try:
        units = resolve_inputs(spec, options.no_prelude, stdin=stdin)
    except InputError as e:
        return _fail(Failure(str(e), Stage.READ), err)
    logger.debug("inputs read: %d unit(s)", len(units))

    outcome = compile_sources(options, units, prefix_lines(driver_options.use_prefix, version))
    if isinstance(outcome, Failure):
        return _fail(outcome, err)

    try:
        route(
            outcome.js,
            outcome.externs,
            output=driver_options.output,
            externs_path=driver_options.externs,
            stdout=stdout,
        )
    except OutputError as e:
        return _fail(Failure(str(e), Stage.WRITE), err)
    logger.debug("outputs written")
    return EXIT_SUCCESS
