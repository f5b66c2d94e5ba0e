"""psc compile pipeline — check, optimize, eliminate, generate.

compile_modules is the single entry point the driver calls once per run.
It is a pure function of its arguments: the same options, modules and
prefix lines always produce the same JavaScript and externs, and the
modules passed in are never modified.
"""

from __future__ import annotations

import copy
import logging
from typing import Iterable

from psc.compiler.ast_nodes import Module, ValueDecl
from psc.compiler.checker import check_modules
from psc.compiler.codegen import render_program
from psc.compiler.dce import eliminate_dead_code
from psc.compiler.externs import render_externs
from psc.compiler.optimizer import optimize_module
from psc.errors import CompileError, Diagnostic, ErrorKind, module_error
from psc.options import CompilerOptions

logger = logging.getLogger(__name__)


def _unknown_modules(names: Iterable[str], known: set[str], flag: str) -> list[Diagnostic]:
    return [
        module_error(f"Unknown module '{name}' given to {flag}")
        for name in names
        if name not in known
    ]


def _check_entry_point(modules: list[Module], main: str) -> list[Diagnostic]:
    for module in modules:
        if module.name == main:
            if any(isinstance(d, ValueDecl) and d.name == "main" for d in module.declarations):
                return []
            return [Diagnostic(
                kind=ErrorKind.ENTRY_POINT_ERROR,
                message=f"Main module '{main}' does not define 'main'",
                location=module.location,
            )]
    return [Diagnostic(
        kind=ErrorKind.ENTRY_POINT_ERROR,
        message=f"Main module '{main}' not found",
    )]


def compile_modules(
    options: CompilerOptions,
    modules: list[Module],
    prefix_lines: Iterable[str] = (),
) -> tuple[str, str]:
    """Compile parsed modules to (javascript, externs).

    Raises CompileError on any semantic failure.
    """
    # Checking resolves names in place; leave the caller's modules untouched
    modules = copy.deepcopy(modules)
    ordered = check_modules(modules, options)
    known = {m.name for m in ordered}

    errors: list[Diagnostic] = []
    errors.extend(_unknown_modules(options.codegen.dce_modules, known, "--module"))
    errors.extend(_unknown_modules(options.codegen.codegen_modules, known, "--codegen"))
    if options.main is not None:
        errors.extend(_check_entry_point(ordered, options.main))
    if errors:
        raise CompileError(errors, verbose=options.verbose_errors)

    if not options.no_optimizations:
        ordered = [optimize_module(m) for m in ordered]

    if options.codegen.dce_modules:
        extra_roots = [(options.main, "main")] if options.main is not None else []
        ordered = eliminate_dead_code(ordered, options.codegen.dce_modules, extra_roots)
        logger.debug("dead code elimination kept %d module(s)", len(ordered))

    if options.codegen.codegen_modules:
        selected = set(options.codegen.codegen_modules)
        ordered = [m for m in ordered if m.name in selected]

    logger.debug("generating code for %s", ", ".join(m.name for m in ordered) or "no modules")
    js = render_program(ordered, options, prefix_lines)
    externs = render_externs(ordered)
    return js, externs
