"""Input aggregation — the ordered source units a run must compile.

File input gets the embedded Prelude prepended unless it is suppressed.
Standard input is always compiled standalone, without the Prelude.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import Optional, TextIO, Union

from psc.errors import InputError
from psc.prelude import PRELUDE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UseStdin:
    pass


@dataclass(frozen=True)
class UseFiles:
    paths: tuple[str, ...] = ()


InputSpec = Union[UseStdin, UseFiles]


@dataclass(frozen=True)
class SourceUnit:
    # None for the Prelude and for standard input
    origin: Optional[str]
    text: str


def input_spec(use_stdin: bool, paths) -> InputSpec:
    if use_stdin:
        return UseStdin()
    return UseFiles(tuple(paths))


def read_source(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise InputError(path, getattr(e, "strerror", None) or str(e)) from e


def resolve_inputs(
    spec: InputSpec,
    no_prelude: bool,
    stdin: Optional[TextIO] = None,
) -> list[SourceUnit]:
    """Produce the source units for one run, in compile order.

    Stops at the first file that cannot be read; later files are never
    opened.
    """
    if isinstance(spec, UseStdin):
        stream = stdin if stdin is not None else sys.stdin
        try:
            text = stream.read()
        except (OSError, UnicodeDecodeError) as e:
            raise InputError(None, str(e)) from e
        logger.debug("read %d characters from standard input", len(text))
        return [SourceUnit(None, text)]

    units: list[SourceUnit] = []
    if not no_prelude:
        units.append(SourceUnit(None, PRELUDE))
    for path in spec.paths:
        units.append(SourceUnit(path, read_source(path)))
        logger.debug("read %s", path)
    return units
