"""psc JavaScript code generation.

Each module becomes an immediately invoked function assigned into the
exports container `_ps`, and the whole program is wrapped so that it
exports to module.exports under CommonJS or to window[<namespace>] in a
browser.

Tail-recursive functions become loops when CompilerOptions.tco is set.
With CompilerOptions.magic_do, do blocks become a single function of
direct statements; otherwise they are chained through a bind helper.
"""

from __future__ import annotations

import json
import re
from typing import Iterable

from psc.compiler.ast_nodes import (
    Module, ValueDecl, ForeignDecl, Declaration,
    Expr, IntLiteral, NumberLiteral, StringLiteral, BoolLiteral, ArrayLiteral,
    Var, App, Lambda, IfExpr, BinaryOp, Negate,
    DoBlock, DoBind, DoLet,
)
from psc.compiler.checker import declaration_references
from psc.compiler.optimizer import is_tail_recursive, self_call_args, unapply
from psc.options import CompilerOptions

INDENT = "    "

JS_RESERVED = frozenset({
    "abstract", "arguments", "boolean", "break", "byte", "case", "catch",
    "char", "class", "const", "continue", "debugger", "default", "delete",
    "do", "double", "else", "enum", "eval", "export", "extends", "false",
    "final", "finally", "float", "for", "function", "goto", "if",
    "implements", "import", "in", "instanceof", "int", "interface", "let",
    "long", "native", "new", "null", "package", "private", "protected",
    "public", "return", "short", "static", "super", "switch",
    "synchronized", "this", "throw", "throws", "transient", "true", "try",
    "typeof", "undefined", "var", "void", "volatile", "while", "with",
    "yield",
})

_PLAIN_IDENT = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

BINARY_JS = {
    "==": "===",
    "/=": "!==",
    "<>": "+",
}

BIND_HELPER = "$bind"

_BIND_HELPER_JS = (
    "var $bind = function (m) {\n"
    "    return function (k) {\n"
    "        return function () {\n"
    "            return k(m())();\n"
    "        };\n"
    "    };\n"
    "};"
)


def pad(level: int) -> str:
    return INDENT * level


def js_ident(name: str) -> str:
    """Map a source identifier to a safe JavaScript identifier."""
    name = name.replace("'", "$prime")
    if name in JS_RESERVED:
        return "$$" + name
    return name


def js_accessor(name: str) -> str:
    if _PLAIN_IDENT.match(name) and name not in JS_RESERVED:
        return "." + name
    return f"[{json.dumps(name)}]"


def module_ref(module_name: str) -> str:
    return f"_ps[{json.dumps(module_name)}]"


def _indent_block(text: str, level: int) -> list[str]:
    return [(pad(level) + line).rstrip() for line in text.splitlines()]


def _is_atomic(expr: Expr) -> bool:
    if isinstance(expr, IntLiteral):
        return expr.value >= 0
    return isinstance(expr, (NumberLiteral, StringLiteral, BoolLiteral, ArrayLiteral, Var, App))


class ModuleEmitter:
    """Emits the JavaScript for one module."""

    def __init__(self, module: Module, options: CompilerOptions):
        self.module = module
        self.options = options
        self.uses_bind = False

    # -------------------------------------------------------------------
    # Module
    # -------------------------------------------------------------------

    def emit(self, level: int) -> list[str]:
        body: list[str] = []
        for decl in self.ordered_declarations():
            body.extend(self._declaration(decl, level + 1))

        lines = [f"{pad(level)}{module_ref(self.module.name)} = (function () {{"]
        if self.uses_bind:
            lines.extend(_indent_block(_BIND_HELPER_JS, level + 1))
        lines.extend(body)
        names = [d.name for d in self.module.declarations]
        if names:
            lines.append(f"{pad(level + 1)}return {{")
            exports = [f"{pad(level + 2)}{json.dumps(n)}: {js_ident(n)}" for n in names]
            lines.append(",\n".join(exports))
            lines.append(f"{pad(level + 1)}}};")
        else:
            lines.append(f"{pad(level + 1)}return {{}};")
        lines.append(f"{pad(level)}}})();")
        return lines

    def ordered_declarations(self) -> list[Declaration]:
        """Source order, except that a declaration follows what it uses."""
        done: set[str] = set()
        ordered: list[Declaration] = []

        def visit(decl: Declaration) -> None:
            if decl.name in done:
                return
            done.add(decl.name)
            refs = declaration_references(decl)
            for dep in self.module.declarations:
                if (self.module.name, dep.name) in refs:
                    visit(dep)
            ordered.append(decl)

        for decl in self.module.declarations:
            visit(decl)
        return ordered

    def _declaration(self, decl: Declaration, level: int) -> list[str]:
        if isinstance(decl, ForeignDecl):
            return _indent_block(decl.js, level)
        name = js_ident(decl.name)
        if self.options.tco and is_tail_recursive(decl, self.module.name):
            value = self._tco_function(decl, 0, level)
        elif decl.params:
            value = self._function(decl.params, decl.body, level)
        else:
            value = self.expr(decl.body, level)
        return [f"{pad(level)}var {name} = {value};"]

    # -------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------

    def expr(self, e: Expr, level: int) -> str:
        if isinstance(e, IntLiteral):
            return str(e.value)
        if isinstance(e, NumberLiteral):
            return e.text
        if isinstance(e, StringLiteral):
            return json.dumps(e.value)
        if isinstance(e, BoolLiteral):
            return "true" if e.value else "false"
        if isinstance(e, ArrayLiteral):
            return "[" + ", ".join(self.expr(i, level) for i in e.items) + "]"
        if isinstance(e, Var):
            return self._var(e)
        if isinstance(e, App):
            head, args = unapply(e)
            return self._callee(head, level) + "".join(f"({self.expr(a, level)})" for a in args)
        if isinstance(e, Lambda):
            return self._function(e.params, e.body, level)
        if isinstance(e, IfExpr):
            return (f"{self._operand(e.cond, level)} ? {self._operand(e.then_branch, level)}"
                    f" : {self._operand(e.else_branch, level)}")
        if isinstance(e, BinaryOp):
            op = BINARY_JS.get(e.op, e.op)
            return f"{self._operand(e.left, level)} {op} {self._operand(e.right, level)}"
        if isinstance(e, Negate):
            return "-" + self._operand(e.operand, level)
        if isinstance(e, DoBlock):
            if self.options.magic_do:
                return self._magic_do(e, level)
            return self._generic_do(e.statements, level)
        raise TypeError(f"Cannot generate code for {type(e).__name__}")

    def _var(self, var: Var) -> str:
        if var.resolved is None or var.resolved == self.module.name:
            return js_ident(var.name)
        return module_ref(var.resolved) + js_accessor(var.name)

    def _operand(self, e: Expr, level: int) -> str:
        text = self.expr(e, level)
        return text if _is_atomic(e) else f"({text})"

    def _callee(self, e: Expr, level: int) -> str:
        text = self.expr(e, level)
        return text if isinstance(e, (Var, App)) else f"({text})"

    def _function(self, params: list[str], body: Expr, level: int) -> str:
        if not params:
            return self.expr(body, level)
        inner = self._function(params[1:], body, level + 1)
        return (f"function ({js_ident(params[0])}) {{\n"
                f"{pad(level + 1)}return {inner};\n"
                f"{pad(level)}}}")

    # -------------------------------------------------------------------
    # do blocks
    # -------------------------------------------------------------------

    def _magic_do(self, block: DoBlock, level: int) -> str:
        inner = pad(level + 1)
        lines: list[str] = []
        for stmt in block.statements[:-1]:
            if isinstance(stmt, DoBind):
                lines.append(f"{inner}var {js_ident(stmt.name)} = {self._callee(stmt.expr, level + 1)}();")
            elif isinstance(stmt, DoLet):
                lines.append(f"{inner}var {js_ident(stmt.name)} = {self.expr(stmt.expr, level + 1)};")
            else:
                lines.append(f"{inner}{self._callee(stmt.expr, level + 1)}();")
        last = block.statements[-1]
        lines.append(f"{inner}return {self._callee(last.expr, level + 1)}();")
        return "function () {\n" + "\n".join(lines) + f"\n{pad(level)}}}"

    def _generic_do(self, statements: list, level: int) -> str:
        stmt = statements[0]
        if len(statements) == 1:
            return self.expr(stmt.expr, level)
        rest = self._generic_do(statements[1:], level + 1)
        if isinstance(stmt, DoLet):
            return (f"(function ({js_ident(stmt.name)}) {{\n"
                    f"{pad(level + 1)}return {rest};\n"
                    f"{pad(level)}}})({self.expr(stmt.expr, level)})")
        self.uses_bind = True
        param = js_ident(stmt.name) if isinstance(stmt, DoBind) else "$unused"
        return (f"{BIND_HELPER}({self.expr(stmt.expr, level)})(function ({param}) {{\n"
                f"{pad(level + 1)}return {rest};\n"
                f"{pad(level)}}})")

    # -------------------------------------------------------------------
    # Tail calls
    # -------------------------------------------------------------------

    def _tco_function(self, decl: ValueDecl, index: int, level: int) -> str:
        param = js_ident(decl.params[index])
        inner = pad(level + 1)
        if index < len(decl.params) - 1:
            lines = [f"{inner}return {self._tco_function(decl, index + 1, level + 1)};"]
        else:
            lines = [f"{inner}var {js_ident(p)} = $copy_{js_ident(p)};" for p in decl.params]
            lines.append(f"{inner}tco: while (true) {{")
            lines.extend(self._tail(decl, decl.body, level + 2))
            lines.append(f"{inner}}}")
        return f"function ($copy_{param}) {{\n" + "\n".join(lines) + f"\n{pad(level)}}}"

    def _tail(self, decl: ValueDecl, e: Expr, level: int) -> list[str]:
        if isinstance(e, IfExpr):
            return (
                [f"{pad(level)}if ({self.expr(e.cond, level)}) {{"]
                + self._tail(decl, e.then_branch, level + 1)
                + [f"{pad(level)}}} else {{"]
                + self._tail(decl, e.else_branch, level + 1)
                + [f"{pad(level)}}}"]
            )
        args = self_call_args(e, self.module.name, decl)
        if args is None:
            return [f"{pad(level)}return {self.expr(e, level)};"]
        names = [js_ident(p) for p in decl.params]
        lines = [f"{pad(level)}var $tco_{n} = {self.expr(a, level)};" for n, a in zip(names, args)]
        lines.extend(f"{pad(level)}{n} = $tco_{n};" for n in names)
        lines.append(f"{pad(level)}continue tco;")
        return lines


def render_program(
    modules: Iterable[Module],
    options: CompilerOptions,
    prefix_lines: Iterable[str] = (),
) -> str:
    """Render the complete, wrapped JavaScript program."""
    lines = [f"// {line}" for line in prefix_lines]
    lines.append("(function (_ps) {")
    lines.append(f'{pad(1)}"use strict";')
    for module in modules:
        lines.extend(ModuleEmitter(module, options).emit(1))
    if options.main is not None:
        lines.append(f"{pad(1)}{module_ref(options.main)}.main();")
    ns = f"window[{json.dumps(options.codegen.browser_namespace)}]"
    lines.append(
        '})((typeof module !== "undefined" && module.exports) ? module.exports : '
        f'(typeof window !== "undefined") ? {ns} = {ns} || {{}} : (function () {{'
    )
    lines.append(f"{pad(1)}throw \"psc doesn't know how to export modules in the current environment\";")
    lines.append("})());")
    return "\n".join(lines)
