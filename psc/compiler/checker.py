"""psc Checker — module graph and name resolution.

Checks duplicate modules and declarations, resolves imports (adding the
implicit Prelude import), orders modules so every module follows its
imports, and resolves every value reference. All problems found are
collected and raised together.
"""

from __future__ import annotations

from typing import Optional

from psc.compiler.ast_nodes import (
    Module, ImportDecl, ValueDecl, ForeignDecl,
    Expr, ArrayLiteral, Var, App, Lambda, IfExpr, BinaryOp, Negate,
    DoBlock, DoBind, DoLet,
)
from psc.errors import (
    CompileError, Diagnostic, ErrorKind, name_error, module_error,
)
from psc.options import CompilerOptions

PRELUDE_MODULE = "Prelude"


def _module_context(module: Module) -> list[str]:
    return [f"module {module.name}"]


def add_implicit_prelude(modules: list[Module], options: CompilerOptions) -> None:
    """Every module but the Prelude imports it, when it is being compiled."""
    if options.no_prelude:
        return
    if not any(m.name == PRELUDE_MODULE for m in modules):
        return
    for module in modules:
        if module.name == PRELUDE_MODULE or PRELUDE_MODULE in module.imported_modules():
            continue
        module.imports.insert(0, ImportDecl(module=PRELUDE_MODULE, location=module.location, implicit=True))


def sort_modules(modules: list[Module]) -> list[Module]:
    """Order modules so that each follows everything it imports.

    Independent modules keep their input order.
    """
    by_name = {m.name: m for m in modules}
    ordered: list[Module] = []
    state: dict[str, str] = {}

    def visit(module: Module, path: list[str]) -> None:
        mark = state.get(module.name)
        if mark == "done":
            return
        if mark == "visiting":
            cycle = path[path.index(module.name):] + [module.name]
            raise CompileError(module_error(
                "Cycle in module dependencies: " + " -> ".join(cycle),
                module.location,
            ))
        state[module.name] = "visiting"
        for imp in module.imports:
            dep = by_name.get(imp.module)
            if dep is not None:
                visit(dep, path + [module.name])
        state[module.name] = "done"
        ordered.append(module)

    for module in modules:
        visit(module, [])
    return ordered


class NameResolver:
    """Resolves value references within one module."""

    def __init__(self, module: Module, exports: dict[str, set[str]]):
        self.module = module
        self.exports = exports
        self.own = set(module.declaration_names())
        self.errors: list[Diagnostic] = []
        self._context: list[str] = []

    def resolve_module(self) -> list[Diagnostic]:
        for decl in self.module.declarations:
            if isinstance(decl, ValueDecl):
                self._context = [f"value declaration {decl.name}"] + _module_context(self.module)
                self._resolve(decl.body, frozenset(decl.params))
        return self.errors

    def _error(self, diagnostic: Diagnostic) -> None:
        diagnostic.context = list(self._context)
        self.errors.append(diagnostic)

    def _resolve_var(self, var: Var, scope: frozenset) -> None:
        if var.qualifier is not None:
            target = var.qualifier
            if target != self.module.name and target not in self.module.imported_modules():
                self._error(module_error(
                    f"Module '{target}' is not imported", var.location,
                ))
                return
            if var.name not in self.exports.get(target, set()):
                self._error(name_error(f"{target}.{var.name}", var.location))
                return
            var.resolved = target
            return

        if var.name in scope:
            var.resolved = None
            return
        if var.name in self.own:
            var.resolved = self.module.name
            return
        candidates = [
            m for m in dict.fromkeys(self.module.imported_modules())
            if var.name in self.exports.get(m, set())
        ]
        if not candidates:
            self._error(name_error(var.name, var.location))
        elif len(candidates) > 1:
            self._error(Diagnostic(
                kind=ErrorKind.NAME_ERROR,
                message=f"Ambiguous value '{var.name}', exported by {', '.join(candidates)}",
                location=var.location,
            ))
        else:
            var.resolved = candidates[0]

    def _resolve(self, expr: Expr, scope: frozenset) -> None:
        if isinstance(expr, Var):
            self._resolve_var(expr, scope)
        elif isinstance(expr, App):
            self._resolve(expr.func, scope)
            self._resolve(expr.arg, scope)
        elif isinstance(expr, Lambda):
            self._resolve(expr.body, scope | set(expr.params))
        elif isinstance(expr, IfExpr):
            self._resolve(expr.cond, scope)
            self._resolve(expr.then_branch, scope)
            self._resolve(expr.else_branch, scope)
        elif isinstance(expr, BinaryOp):
            self._resolve(expr.left, scope)
            self._resolve(expr.right, scope)
        elif isinstance(expr, Negate):
            self._resolve(expr.operand, scope)
        elif isinstance(expr, ArrayLiteral):
            for item in expr.items:
                self._resolve(item, scope)
        elif isinstance(expr, DoBlock):
            for stmt in expr.statements:
                self._resolve(stmt.expr, scope)
                if isinstance(stmt, (DoBind, DoLet)):
                    scope = scope | {stmt.name}


def _check_declarations(module: Module) -> list[Diagnostic]:
    errors: list[Diagnostic] = []
    context = _module_context(module)
    seen: set[str] = set()
    for decl in module.declarations:
        if decl.name in seen:
            errors.append(Diagnostic(
                kind=ErrorKind.DECLARATION_ERROR,
                message=f"Value '{decl.name}' is declared more than once",
                location=decl.location,
                context=context,
            ))
        seen.add(decl.name)
        if isinstance(decl, ValueDecl) and len(set(decl.params)) != len(decl.params):
            errors.append(Diagnostic(
                kind=ErrorKind.DECLARATION_ERROR,
                message=f"Duplicate parameter name in '{decl.name}'",
                location=decl.location,
                context=context,
            ))

    signed: set[str] = set()
    for sig in module.signatures:
        if sig.name in signed:
            errors.append(Diagnostic(
                kind=ErrorKind.DECLARATION_ERROR,
                message=f"Duplicate type declaration for '{sig.name}'",
                location=sig.location,
                context=context,
            ))
        signed.add(sig.name)
        if not any(isinstance(d, ValueDecl) and d.name == sig.name for d in module.declarations):
            errors.append(Diagnostic(
                kind=ErrorKind.DECLARATION_ERROR,
                message=f"The type declaration for '{sig.name}' should be followed by its definition",
                location=sig.location,
                context=context,
            ))
    return errors


def check_modules(modules: list[Module], options: CompilerOptions) -> list[Module]:
    """Check a program and return its modules in dependency order.

    Raises CompileError listing every problem found.
    """
    errors: list[Diagnostic] = []
    by_name: dict[str, Module] = {}
    for module in modules:
        if module.name in by_name:
            errors.append(module_error(
                f"Module '{module.name}' is defined more than once",
                module.location,
            ))
        else:
            by_name[module.name] = module
    if errors:
        raise CompileError(errors, verbose=options.verbose_errors)

    add_implicit_prelude(modules, options)

    for module in modules:
        for imp in module.imports:
            if imp.module not in by_name:
                errors.append(module_error(
                    f"Unknown module '{imp.module}'",
                    imp.location,
                    context=_module_context(module),
                ))
    if errors:
        raise CompileError(errors, verbose=options.verbose_errors)

    try:
        ordered = sort_modules(modules)
    except CompileError as e:
        raise CompileError(e.errors, verbose=options.verbose_errors) from e

    exports = {m.name: set(m.declaration_names()) for m in ordered}
    for module in ordered:
        errors.extend(_check_declarations(module))
        errors.extend(NameResolver(module, exports).resolve_module())
    if errors:
        raise CompileError(errors, verbose=options.verbose_errors)
    return ordered


def references(expr: Expr, found: Optional[set] = None) -> set[tuple[str, str]]:
    """Every resolved top-level (module, name) an expression refers to."""
    if found is None:
        found = set()
    if isinstance(expr, Var):
        if expr.resolved is not None:
            found.add((expr.resolved, expr.name))
    elif isinstance(expr, App):
        references(expr.func, found)
        references(expr.arg, found)
    elif isinstance(expr, Lambda):
        references(expr.body, found)
    elif isinstance(expr, IfExpr):
        references(expr.cond, found)
        references(expr.then_branch, found)
        references(expr.else_branch, found)
    elif isinstance(expr, BinaryOp):
        references(expr.left, found)
        references(expr.right, found)
    elif isinstance(expr, Negate):
        references(expr.operand, found)
    elif isinstance(expr, ArrayLiteral):
        for item in expr.items:
            references(item, found)
    elif isinstance(expr, DoBlock):
        for stmt in expr.statements:
            references(stmt.expr, found)
    return found


def declaration_references(decl) -> set[tuple[str, str]]:
    if isinstance(decl, ForeignDecl):
        return set()
    return references(decl.body)
