"""psc optimization phase.

Constant folding over literal operands and tail-call analysis. Integer
arithmetic, integer comparisons and boolean connectives are evaluated by
the Z3 simplifier so folded results match exact integer semantics.

The whole phase is skipped with --no-opts; tail calls and do blocks are
rewritten by the code generator when CompilerOptions.tco and
CompilerOptions.magic_do allow it.
"""

from __future__ import annotations

import dataclasses
from typing import Any, Optional

import z3

from psc.compiler.ast_nodes import (
    Module, ValueDecl,
    Expr, IntLiteral, StringLiteral, BoolLiteral, ArrayLiteral,
    Var, App, Lambda, IfExpr, BinaryOp, Negate,
    DoBlock,
)

# JavaScript numbers are doubles: integers beyond this lose precision
MAX_EXACT_INT = 2 ** 53


def _exact(value: int) -> bool:
    return -MAX_EXACT_INT <= value <= MAX_EXACT_INT


_INT_OPS = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "==": lambda a, b: a == b,
    "/=": lambda a, b: a != b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
}

_BOOL_OPS = {
    "&&": lambda a, b: z3.And(a, b),
    "||": lambda a, b: z3.Or(a, b),
    "==": lambda a, b: a == b,
    "/=": lambda a, b: a != b,
}


def _literal_from_z3(term: Any, location) -> Optional[Expr]:
    result = z3.simplify(term)
    if z3.is_int_value(result):
        return IntLiteral(value=result.as_long(), location=location)
    if z3.is_true(result):
        return BoolLiteral(value=True, location=location)
    if z3.is_false(result):
        return BoolLiteral(value=False, location=location)
    return None


def _fold_binary(expr: BinaryOp) -> Expr:
    left, right = expr.left, expr.right
    if isinstance(left, IntLiteral) and isinstance(right, IntLiteral) and expr.op in _INT_OPS:
        if not (_exact(left.value) and _exact(right.value)):
            return expr
        term = _INT_OPS[expr.op](z3.IntVal(left.value), z3.IntVal(right.value))
        folded = _literal_from_z3(term, expr.location)
        if folded is None or (isinstance(folded, IntLiteral) and not _exact(folded.value)):
            return expr
        return folded
    if isinstance(left, BoolLiteral) and isinstance(right, BoolLiteral) and expr.op in _BOOL_OPS:
        term = _BOOL_OPS[expr.op](z3.BoolVal(left.value), z3.BoolVal(right.value))
        return _literal_from_z3(term, expr.location) or expr
    if isinstance(left, StringLiteral) and isinstance(right, StringLiteral) and expr.op == "<>":
        return StringLiteral(value=left.value + right.value, location=expr.location)
    return expr


def fold_constants(expr: Expr) -> Expr:
    """Return expr with every literal-only subexpression evaluated."""
    if isinstance(expr, BinaryOp):
        folded = BinaryOp(
            op=expr.op,
            left=fold_constants(expr.left),
            right=fold_constants(expr.right),
            location=expr.location,
        )
        return _fold_binary(folded)
    if isinstance(expr, Negate):
        operand = fold_constants(expr.operand)
        if isinstance(operand, IntLiteral):
            return IntLiteral(value=-operand.value, location=expr.location)
        return Negate(operand=operand, location=expr.location)
    if isinstance(expr, IfExpr):
        cond = fold_constants(expr.cond)
        then_branch = fold_constants(expr.then_branch)
        else_branch = fold_constants(expr.else_branch)
        if isinstance(cond, BoolLiteral):
            return then_branch if cond.value else else_branch
        return IfExpr(cond=cond, then_branch=then_branch, else_branch=else_branch, location=expr.location)
    if isinstance(expr, App):
        return App(func=fold_constants(expr.func), arg=fold_constants(expr.arg), location=expr.location)
    if isinstance(expr, Lambda):
        return Lambda(params=list(expr.params), body=fold_constants(expr.body), location=expr.location)
    if isinstance(expr, ArrayLiteral):
        return ArrayLiteral(items=[fold_constants(i) for i in expr.items], location=expr.location)
    if isinstance(expr, DoBlock):
        return DoBlock(
            statements=[dataclasses.replace(s, expr=fold_constants(s.expr)) for s in expr.statements],
            location=expr.location,
        )
    return expr


def optimize_module(module: Module) -> Module:
    declarations = []
    for decl in module.declarations:
        if isinstance(decl, ValueDecl):
            decl = dataclasses.replace(decl, body=fold_constants(decl.body))
        declarations.append(decl)
    return dataclasses.replace(module, declarations=declarations)


# ---------------------------------------------------------------------------
# Tail calls
# ---------------------------------------------------------------------------

def _is_self(expr: Expr, module_name: str, decl_name: str) -> bool:
    return isinstance(expr, Var) and expr.resolved == module_name and expr.name == decl_name


def unapply(expr: Expr) -> tuple[Expr, list[Expr]]:
    """Split f a b into (f, [a, b])."""
    args: list[Expr] = []
    while isinstance(expr, App):
        args.append(expr.arg)
        expr = expr.func
    args.reverse()
    return expr, args


def self_call_args(expr: Expr, module_name: str, decl: ValueDecl) -> Optional[list[Expr]]:
    """The arguments of a saturated self call, or None."""
    head, args = unapply(expr)
    if _is_self(head, module_name, decl.name) and len(args) == len(decl.params):
        return args
    return None


def _mentions_self(expr: Expr, module_name: str, decl_name: str) -> bool:
    if _is_self(expr, module_name, decl_name):
        return True
    if isinstance(expr, App):
        return _mentions_self(expr.func, module_name, decl_name) or _mentions_self(expr.arg, module_name, decl_name)
    if isinstance(expr, Lambda):
        return _mentions_self(expr.body, module_name, decl_name)
    if isinstance(expr, IfExpr):
        return any(_mentions_self(e, module_name, decl_name)
                   for e in (expr.cond, expr.then_branch, expr.else_branch))
    if isinstance(expr, BinaryOp):
        return _mentions_self(expr.left, module_name, decl_name) or _mentions_self(expr.right, module_name, decl_name)
    if isinstance(expr, Negate):
        return _mentions_self(expr.operand, module_name, decl_name)
    if isinstance(expr, ArrayLiteral):
        return any(_mentions_self(i, module_name, decl_name) for i in expr.items)
    if isinstance(expr, DoBlock):
        return any(_mentions_self(s.expr, module_name, decl_name) for s in expr.statements)
    return False


def is_tail_recursive(decl: ValueDecl, module_name: str) -> bool:
    """True when every self reference is a saturated call in tail position.

    At least one such call must exist. Tail positions are the body itself
    and the branches of a conditional in tail position.
    """
    if not decl.params:
        return False
    found = False

    def walk(expr: Expr) -> bool:
        nonlocal found
        if isinstance(expr, IfExpr):
            if _mentions_self(expr.cond, module_name, decl.name):
                return False
            return walk(expr.then_branch) and walk(expr.else_branch)
        args = self_call_args(expr, module_name, decl)
        if args is not None:
            found = True
            return not any(_mentions_self(a, module_name, decl.name) for a in args)
        return not _mentions_self(expr, module_name, decl.name)

    return walk(decl.body) and found
