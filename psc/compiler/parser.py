"""psc Parser — layout-aware recursive-descent parser.

Parses a token stream into modules. Layout is column based: a top-level
declaration starts in column 1, and the statements of a do block start at
the column of the block's first statement. Inside parentheses and brackets
layout is suspended.
"""

from __future__ import annotations

from typing import Iterable, Optional

from psc.compiler.lexer import Token, TokenType, tokenize
from psc.compiler.ast_nodes import (
    Module, ImportDecl, ValueDecl, ForeignDecl, SignatureDecl,
    Expr, IntLiteral, NumberLiteral, StringLiteral, BoolLiteral, ArrayLiteral,
    Var, App, Lambda, IfExpr, BinaryOp, Negate,
    DoBlock, DoBind, DoLet, DoExpr, DoStatement,
)
from psc.errors import SourceLocation, syntax_error, ParseError


# token type -> (operator, precedence, right associative)
BINARY_OPS: dict[TokenType, tuple[str, int, bool]] = {
    TokenType.OR: ("||", 1, True),
    TokenType.AND: ("&&", 2, True),
    TokenType.EQ: ("==", 4, False),
    TokenType.NEQ: ("/=", 4, False),
    TokenType.LT: ("<", 4, False),
    TokenType.LTE: ("<=", 4, False),
    TokenType.GT: (">", 4, False),
    TokenType.GTE: (">=", 4, False),
    TokenType.APPEND: ("<>", 5, True),
    TokenType.PLUS: ("+", 6, False),
    TokenType.MINUS: ("-", 6, False),
    TokenType.STAR: ("*", 7, False),
    TokenType.SLASH: ("/", 7, False),
    TokenType.PERCENT: ("%", 7, False),
}

ATOM_START = {
    TokenType.INT_LIT, TokenType.NUMBER_LIT, TokenType.STRING_LIT,
    TokenType.TRUE, TokenType.FALSE, TokenType.IDENT, TokenType.QUALIFIED,
    TokenType.LPAREN, TokenType.LBRACKET,
}

# Block expressions that may end an application or operator chain
BLOCK_START = {TokenType.BACKSLASH, TokenType.IF, TokenType.DO}


class Parser:
    """Recursive-descent parser for psc modules."""

    def __init__(self, tokens: list[Token], source: str = "", filename: str = "<stdin>"):
        self.tokens = tokens
        self.source = source
        self.pos = 0
        self.filename = filename
        self._layout: list[int] = [1]
        # Index of the token opening the current do statement
        self._statement_start = -1

    def _current(self) -> Token:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return self.tokens[-1]  # EOF

    def _peek(self) -> TokenType:
        return self._current().type

    def _peek_next(self) -> TokenType:
        if self.pos + 1 < len(self.tokens):
            return self.tokens[self.pos + 1].type
        return TokenType.EOF

    def _loc(self) -> SourceLocation:
        return self._current().location

    def _advance(self) -> Token:
        tok = self._current()
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def _unexpected(self, expected: Optional[str] = None) -> ParseError:
        tok = self._current()
        found = "end of input" if tok.type == TokenType.EOF else f"'{tok.value}'"
        message = f"Expected {expected}, got {found}" if expected else f"Unexpected {found}"
        return ParseError(syntax_error(message, tok.location))

    def _expect(self, tt: TokenType, what: Optional[str] = None) -> Token:
        if self._peek() != tt:
            raise self._unexpected(what or tt.name.lower())
        return self._advance()

    def _match(self, tt: TokenType) -> Optional[Token]:
        if self._peek() == tt:
            return self._advance()
        return None

    def _at_boundary(self) -> bool:
        tok = self._current()
        if tok.type == TokenType.EOF:
            return True
        if self.pos == self._statement_start:
            return False
        return tok.first_on_line and tok.column <= self._layout[-1]

    def _expect_boundary(self) -> None:
        if not self._at_boundary():
            raise self._unexpected()

    # -------------------------------------------------------------------
    # Top-level
    # -------------------------------------------------------------------

    def parse(self) -> list[Module]:
        modules: list[Module] = []
        while self._peek() != TokenType.EOF:
            modules.append(self._parse_module())
        return modules

    def _at_module_header(self) -> bool:
        tok = self._current()
        return tok.type == TokenType.MODULE and tok.first_on_line and tok.column == 1

    def _parse_module(self) -> Module:
        loc = self._loc()
        if not self._at_module_header():
            raise self._unexpected("'module' in column 1")
        self._advance()
        name = self._expect(TokenType.PROPER, "a module name").value
        self._expect(TokenType.WHERE, "'where'")
        self._expect_boundary()

        module = Module(name=name, filename=self.filename, location=loc)
        while self._peek() != TokenType.EOF and not self._at_module_header():
            tok = self._current()
            if tok.column != 1:
                raise ParseError(syntax_error(
                    f"Declarations must start in column 1, got '{tok.value}'",
                    tok.location,
                ))
            self._parse_declaration(module)
            self._expect_boundary()
        return module

    def _parse_declaration(self, module: Module) -> None:
        tt = self._peek()
        if tt == TokenType.IMPORT:
            loc = self._loc()
            self._advance()
            name = self._expect(TokenType.PROPER, "a module name").value
            module.imports.append(ImportDecl(module=name, location=loc))
        elif tt == TokenType.FOREIGN:
            module.declarations.append(self._parse_foreign())
        elif tt == TokenType.IDENT and self._peek_next() == TokenType.DOUBLE_COLON:
            loc = self._loc()
            name = self._advance().value
            self._advance()
            module.signatures.append(SignatureDecl(name, self._parse_type_text(), loc))
        elif tt == TokenType.IDENT:
            module.declarations.append(self._parse_value_decl())
        else:
            raise self._unexpected("a declaration")

    def _parse_foreign(self) -> ForeignDecl:
        loc = self._loc()
        self._expect(TokenType.FOREIGN)
        self._expect(TokenType.IMPORT, "'import'")
        name = self._expect(TokenType.IDENT, "an identifier").value
        js = self._expect(TokenType.STRING_LIT, "a JavaScript string").value
        self._expect(TokenType.DOUBLE_COLON, "'::'")
        return ForeignDecl(name=name, js=js, type_text=self._parse_type_text(), location=loc)

    def _parse_value_decl(self) -> ValueDecl:
        loc = self._loc()
        name = self._expect(TokenType.IDENT).value
        params: list[str] = []
        while self._peek() == TokenType.IDENT:
            params.append(self._advance().value)
        self._expect(TokenType.ASSIGN, "'='")
        body = self._parse_expr()
        return ValueDecl(name=name, params=params, body=body, location=loc)

    def _parse_type_text(self) -> str:
        """Types are not checked; keep their source text, whitespace collapsed."""
        if self._at_boundary():
            raise self._unexpected("a type")
        first = self._current()
        last = first
        while not self._at_boundary():
            last = self._advance()
        return " ".join(self.source[first.start:last.end].split())

    # -------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------

    def _parse_expr(self) -> Expr:
        if self._at_boundary():
            raise self._unexpected("an expression")
        tt = self._peek()
        if tt == TokenType.BACKSLASH:
            return self._parse_lambda()
        if tt == TokenType.IF:
            return self._parse_if()
        if tt == TokenType.DO:
            return self._parse_do()
        return self._parse_binary(0)

    def _parse_binary(self, min_prec: int) -> Expr:
        left = self._parse_unary()
        while not self._at_boundary() and self._peek() in BINARY_OPS:
            op, prec, right_assoc = BINARY_OPS[self._peek()]
            if prec < min_prec:
                break
            loc = self._advance().location
            if self._peek() in BLOCK_START:
                right = self._parse_expr()
            else:
                right = self._parse_binary(prec if right_assoc else prec + 1)
            left = BinaryOp(op=op, left=left, right=right, location=loc)
        return left

    def _parse_unary(self) -> Expr:
        if self._peek() == TokenType.MINUS:
            loc = self._advance().location
            return Negate(operand=self._parse_unary(), location=loc)
        return self._parse_application()

    def _parse_application(self) -> Expr:
        func = self._parse_atom()
        while not self._at_boundary():
            tt = self._peek()
            if tt in ATOM_START:
                arg = self._parse_atom()
            elif tt in BLOCK_START:
                arg = self._parse_expr()
            else:
                break
            func = App(func=func, arg=arg, location=func.location)
        return func

    def _parse_atom(self) -> Expr:
        tok = self._current()
        loc = tok.location
        tt = tok.type
        if tt == TokenType.INT_LIT:
            self._advance()
            return IntLiteral(value=int(tok.value), location=loc)
        if tt == TokenType.NUMBER_LIT:
            self._advance()
            return NumberLiteral(text=tok.value, location=loc)
        if tt == TokenType.STRING_LIT:
            self._advance()
            return StringLiteral(value=tok.value, location=loc)
        if tt in (TokenType.TRUE, TokenType.FALSE):
            self._advance()
            return BoolLiteral(value=tt == TokenType.TRUE, location=loc)
        if tt == TokenType.IDENT:
            self._advance()
            return Var(name=tok.value, location=loc)
        if tt == TokenType.QUALIFIED:
            self._advance()
            qualifier, _, name = tok.value.rpartition(".")
            return Var(name=name, qualifier=qualifier, location=loc)
        if tt == TokenType.LPAREN:
            self._advance()
            self._layout.append(0)
            expr = self._parse_expr()
            self._expect(TokenType.RPAREN, "')'")
            self._layout.pop()
            return expr
        if tt == TokenType.LBRACKET:
            self._advance()
            self._layout.append(0)
            items: list[Expr] = []
            if self._peek() != TokenType.RBRACKET:
                items.append(self._parse_expr())
                while self._match(TokenType.COMMA):
                    items.append(self._parse_expr())
            self._expect(TokenType.RBRACKET, "']'")
            self._layout.pop()
            return ArrayLiteral(items=items, location=loc)
        raise self._unexpected("an expression")

    def _parse_lambda(self) -> Lambda:
        loc = self._loc()
        self._expect(TokenType.BACKSLASH)
        params = [self._expect(TokenType.IDENT, "a parameter name").value]
        while self._peek() == TokenType.IDENT:
            params.append(self._advance().value)
        self._expect(TokenType.ARROW, "'->'")
        return Lambda(params=params, body=self._parse_expr(), location=loc)

    def _parse_if(self) -> IfExpr:
        loc = self._loc()
        self._expect(TokenType.IF)
        cond = self._parse_expr()
        self._expect(TokenType.THEN, "'then'")
        then_branch = self._parse_expr()
        self._expect(TokenType.ELSE, "'else'")
        else_branch = self._parse_expr()
        return IfExpr(cond=cond, then_branch=then_branch, else_branch=else_branch, location=loc)

    # -------------------------------------------------------------------
    # do blocks
    # -------------------------------------------------------------------

    def _parse_do(self) -> DoBlock:
        loc = self._loc()
        self._expect(TokenType.DO)
        if self._at_boundary():
            raise ParseError(syntax_error("Empty 'do' block", loc))
        column = self._current().column
        self._layout.append(column)
        statements = [self._parse_do_statement()]
        while True:
            tok = self._current()
            if tok.type == TokenType.EOF or not (tok.first_on_line and tok.column == column):
                break
            statements.append(self._parse_do_statement())
        self._layout.pop()
        if not isinstance(statements[-1], DoExpr):
            raise ParseError(syntax_error(
                "The last statement in a 'do' block must be an expression",
                statements[-1].location,
            ))
        return DoBlock(statements=statements, location=loc)

    def _parse_do_statement(self) -> DoStatement:
        loc = self._loc()
        self._statement_start = self.pos
        if self._match(TokenType.LET):
            name = self._expect(TokenType.IDENT, "an identifier").value
            params: list[str] = []
            while self._peek() == TokenType.IDENT:
                params.append(self._advance().value)
            self._expect(TokenType.ASSIGN, "'='")
            value = self._parse_expr()
            if params:
                value = Lambda(params=params, body=value, location=loc)
            return DoLet(name=name, expr=value, location=loc)
        if self._peek() == TokenType.IDENT and self._peek_next() == TokenType.LARROW:
            name = self._advance().value
            self._advance()
            return DoBind(name=name, expr=self._parse_expr(), location=loc)
        return DoExpr(expr=self._parse_expr(), location=loc)


def parse(source: str, filename: str = "<stdin>") -> list[Module]:
    """Parse source text containing one or more modules."""
    tokens = tokenize(source, filename)
    return Parser(tokens, source, filename).parse()


def parse_modules(units: Iterable[tuple[Optional[str], str]]) -> list[Module]:
    """Parse every (origin, text) unit, in order.

    Units without an origin (the Prelude, standard input) are reported as
    <stdin> in diagnostics.
    """
    modules: list[Module] = []
    for origin, text in units:
        modules.extend(parse(text, filename=origin if origin is not None else "<stdin>"))
    return modules
