"""Interface descriptors (externs) for generated modules.

One block per module: the module header, its explicit imports, and a
signature line for every declaration it exports. Declarations without a
written signature are listed with the wildcard type `_`.
"""

from __future__ import annotations

from psc.compiler.ast_nodes import Module


def module_to_externs(module: Module) -> str:
    lines = [f"module {module.name} where"]
    for imp in module.imports:
        if not imp.implicit:
            lines.append(f"import {imp.module}")
    for decl in module.declarations:
        lines.append(f"{decl.name} :: {module.signature_for(decl.name) or '_'}")
    return "\n".join(lines) + "\n"


def render_externs(modules: list[Module]) -> str:
    return "\n".join(module_to_externs(m) for m in modules)
