"""psc AST node definitions.

Top-level constructs: module header, import, type signature, value
declaration, foreign import. Expressions cover literals, names,
application, lambdas, conditionals, operators and do blocks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from psc.errors import SourceLocation


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

@dataclass
class Expr:
    """Base class for expressions."""
    location: Optional[SourceLocation] = None


@dataclass
class IntLiteral(Expr):
    value: int = 0


@dataclass
class NumberLiteral(Expr):
    # Kept as written so generated code matches the source
    text: str = "0.0"


@dataclass
class StringLiteral(Expr):
    value: str = ""


@dataclass
class BoolLiteral(Expr):
    value: bool = False


@dataclass
class ArrayLiteral(Expr):
    items: list[Expr] = field(default_factory=list)


@dataclass
class Var(Expr):
    """A value reference, optionally qualified (Data.Foo.bar)."""
    name: str = ""
    qualifier: Optional[str] = None
    # Set by the checker: the defining module for top-level values,
    # None for local bindings.
    resolved: Optional[str] = None


@dataclass
class App(Expr):
    func: Expr = field(default_factory=Expr)
    arg: Expr = field(default_factory=Expr)


@dataclass
class Lambda(Expr):
    params: list[str] = field(default_factory=list)
    body: Expr = field(default_factory=Expr)


@dataclass
class IfExpr(Expr):
    cond: Expr = field(default_factory=Expr)
    then_branch: Expr = field(default_factory=Expr)
    else_branch: Expr = field(default_factory=Expr)


@dataclass
class BinaryOp(Expr):
    op: str = ""
    left: Expr = field(default_factory=Expr)
    right: Expr = field(default_factory=Expr)


@dataclass
class Negate(Expr):
    operand: Expr = field(default_factory=Expr)


# ---------------------------------------------------------------------------
# Do blocks
# ---------------------------------------------------------------------------

@dataclass
class DoBind:
    """x <- action"""
    name: str
    expr: Expr
    location: Optional[SourceLocation] = None


@dataclass
class DoLet:
    """let x = value"""
    name: str
    expr: Expr
    location: Optional[SourceLocation] = None


@dataclass
class DoExpr:
    expr: Expr
    location: Optional[SourceLocation] = None


DoStatement = Union[DoBind, DoLet, DoExpr]


@dataclass
class DoBlock(Expr):
    statements: list[DoStatement] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Declarations
# ---------------------------------------------------------------------------

@dataclass
class ImportDecl:
    module: str
    location: Optional[SourceLocation] = None
    implicit: bool = False


@dataclass
class ValueDecl:
    name: str
    params: list[str] = field(default_factory=list)
    body: Expr = field(default_factory=Expr)
    location: Optional[SourceLocation] = None


@dataclass
class ForeignDecl:
    name: str
    js: str = ""
    type_text: str = ""
    location: Optional[SourceLocation] = None


@dataclass
class SignatureDecl:
    name: str
    type_text: str = ""
    location: Optional[SourceLocation] = None


Declaration = Union[ValueDecl, ForeignDecl]


@dataclass
class Module:
    name: str
    imports: list[ImportDecl] = field(default_factory=list)
    declarations: list[Declaration] = field(default_factory=list)
    signatures: list[SignatureDecl] = field(default_factory=list)
    filename: str = "<stdin>"
    location: Optional[SourceLocation] = None

    def declaration_names(self) -> list[str]:
        return [d.name for d in self.declarations]

    def signature_for(self, name: str) -> Optional[str]:
        for sig in self.signatures:
            if sig.name == name:
                return sig.type_text
        for decl in self.declarations:
            if isinstance(decl, ForeignDecl) and decl.name == name:
                return decl.type_text
        return None

    def imported_modules(self) -> list[str]:
        return [imp.module for imp in self.imports]
