"""Dead code elimination.

Keeps the declarations reachable from the root modules and drops every
module left without declarations.
"""

from __future__ import annotations

import dataclasses
from typing import Iterable

from psc.compiler.ast_nodes import Module
from psc.compiler.checker import declaration_references


def eliminate_dead_code(
    modules: list[Module],
    root_modules: Iterable[str],
    extra_roots: Iterable[tuple[str, str]] = (),
) -> list[Module]:
    """Filter modules down to what the roots transitively depend on.

    Every declaration of a root module is a root; extra_roots adds single
    (module, name) roots such as the entry point's main.
    """
    decls = {
        (m.name, d.name): d
        for m in modules
        for d in m.declarations
    }
    roots = set(root_modules)
    pending = [key for key in decls if key[0] in roots]
    pending.extend(key for key in extra_roots if key in decls)

    live: set[tuple[str, str]] = set()
    while pending:
        key = pending.pop()
        if key in live:
            continue
        live.add(key)
        pending.extend(ref for ref in declaration_references(decls[key]) if ref in decls)

    result: list[Module] = []
    for module in modules:
        kept = [d for d in module.declarations if (module.name, d.name) in live]
        if kept or module.name in roots:
            result.append(dataclasses.replace(
                module,
                declarations=kept,
                signatures=[s for s in module.signatures if (module.name, s.name) in live],
            ))
    return result
