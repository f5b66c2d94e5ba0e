"""Output routing for a successful compile.

Generated code goes to the --output file or to standard output. The
externs file is written only when --externs is given. The two writes are
independent: a code file already written is left in place if the externs
write fails.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional, TextIO

from psc.errors import OutputError

logger = logging.getLogger(__name__)


def mkdirp(path: str) -> None:
    """Create the parent directories of path, if any are missing."""
    parent = os.path.dirname(path)
    if not parent:
        return
    try:
        os.makedirs(parent, exist_ok=True)
    except OSError as e:
        raise OutputError(path, e.strerror or str(e)) from e


def write_file(path: str, content: str) -> None:
    mkdirp(path)
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        raise OutputError(path, e.strerror or str(e)) from e
    logger.debug("wrote %s", path)


def route(
    js: str,
    externs: Optional[str],
    output: Optional[str] = None,
    externs_path: Optional[str] = None,
    stdout: Optional[TextIO] = None,
) -> None:
    if output is not None:
        write_file(output, js)
    else:
        print(js, file=stdout if stdout is not None else sys.stdout)

    if externs_path is not None and externs is not None:
        write_file(externs_path, externs)
