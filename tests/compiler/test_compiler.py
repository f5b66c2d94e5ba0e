"""psc compiler core tests — lexer, parser, checker and the compile pipeline.

The driver treats this core as an opaque collaborator; these tests pin down
the behaviour the driver relies on.
"""

import json

import pytest

from psc.compiler.lexer import tokenize, TokenType
from psc.compiler.parser import parse, parse_modules
from psc.compiler.ast_nodes import (
    ValueDecl, ForeignDecl, BinaryOp, IntLiteral, Var, App, Lambda, IfExpr,
    DoBlock, DoBind, DoLet, DoExpr, Negate,
)
from psc.compiler.checker import check_modules
from psc.compiler.pipeline import compile_modules
from psc.errors import ParseError, CompileError, ErrorKind
from psc.options import make_options
from psc.prelude import PRELUDE


def compile_text(source, **flags):
    flags.setdefault("no_prelude", True)
    modules = parse_modules([("Test.purs", source)])
    return compile_modules(make_options(**flags), modules, [])


class TestLexer:

    def test_qualified_names(self):
        tokens = tokenize("Data.Foo.bar Data.Foo x")
        assert [t.type for t in tokens] == [
            TokenType.QUALIFIED, TokenType.PROPER, TokenType.IDENT, TokenType.EOF,
        ]
        assert tokens[0].value == "Data.Foo.bar"

    def test_operators_longest_match(self):
        tokens = tokenize("<- <> <= < -> :: /= == \\")
        assert [t.type for t in tokens[:-1]] == [
            TokenType.LARROW, TokenType.APPEND, TokenType.LTE, TokenType.LT,
            TokenType.ARROW, TokenType.DOUBLE_COLON, TokenType.NEQ, TokenType.EQ,
            TokenType.BACKSLASH,
        ]

    def test_comments_skipped(self):
        tokens = tokenize("x -- line comment\n{- block\ncomment -} y")
        assert [t.value for t in tokens[:-1]] == ["x", "y"]

    def test_first_on_line(self):
        tokens = tokenize("a b\n  c")
        assert [t.first_on_line for t in tokens[:-1]] == [True, False, True]
        assert tokens[2].column == 3

    def test_string_escapes(self):
        tokens = tokenize('"a\\nb\\"c"')
        assert tokens[0].value == 'a\nb"c'

    def test_unterminated_string(self):
        with pytest.raises(ParseError):
            tokenize('"abc')

    def test_unexpected_character(self):
        with pytest.raises(ParseError) as exc:
            tokenize("x = 1 @ 2", filename="Bad.purs")
        assert "Bad.purs:1:7" in str(exc.value)


class TestParser:

    def test_module_with_declarations(self):
        modules = parse(
            "module A where\n"
            "\n"
            "import B\n"
            "add :: Int -> Int -> Int\n"
            "add x y = x + y\n"
        )
        assert len(modules) == 1
        module = modules[0]
        assert module.name == "A"
        assert module.imported_modules() == ["B"]
        assert module.signature_for("add") == "Int -> Int -> Int"
        decl = module.declarations[0]
        assert isinstance(decl, ValueDecl)
        assert decl.params == ["x", "y"]
        assert isinstance(decl.body, BinaryOp)

    def test_several_modules_in_one_source(self):
        modules = parse("module A where\nx = 1\nmodule B where\ny = 2\n")
        assert [m.name for m in modules] == ["A", "B"]

    def test_precedence(self):
        decl = parse("module A where\nx = 1 + 2 * 3\n")[0].declarations[0]
        assert decl.body.op == "+"
        assert isinstance(decl.body.left, IntLiteral)
        assert decl.body.right.op == "*"

    def test_application_is_curried(self):
        decl = parse("module A where\nx = f a b\n")[0].declarations[0]
        assert isinstance(decl.body, App)
        assert isinstance(decl.body.func, App)
        assert decl.body.func.func.name == "f"

    def test_continuation_lines(self):
        decl = parse("module A where\nx = f\n  a\n  b\ny = 2\n")[0].declarations[0]
        assert isinstance(decl.body, App)

    def test_lambda_and_if(self):
        decl = parse("module A where\nf = \\x -> if x then 1 else -1\n")[0].declarations[0]
        assert isinstance(decl.body, Lambda)
        assert isinstance(decl.body.body, IfExpr)
        assert isinstance(decl.body.body.else_branch, Negate)

    def test_do_block(self):
        source = (
            "module A where\n"
            "main = do\n"
            "  x <- pureE 1\n"
            "  let y = x + 1\n"
            "  trace (show y)\n"
        )
        block = parse(source)[0].declarations[0].body
        assert isinstance(block, DoBlock)
        assert [type(s) for s in block.statements] == [DoBind, DoLet, DoExpr]

    def test_do_block_must_end_with_expression(self):
        with pytest.raises(ParseError) as exc:
            parse("module A where\nmain = do\n  x <- pureE 1\n")
        assert "last statement" in str(exc.value)

    def test_do_block_of_expression_statements(self):
        source = (
            "module A where\n"
            "main = do\n"
            "  trace \"a\"\n"
            "  trace \"b\"\n"
            "other = 1\n"
        )
        module = parse(source)[0]
        block = module.declarations[0].body
        assert [type(s) for s in block.statements] == [DoExpr, DoExpr]
        assert block.statements[1].expr.arg.value == "b"
        assert module.declaration_names() == ["main", "other"]

    def test_nested_do_blocks(self):
        source = (
            "module A where\n"
            "main = do\n"
            "  x <- do\n"
            "    trace \"inner\"\n"
            "    pureE 1\n"
            "  pureE x\n"
        )
        block = parse(source)[0].declarations[0].body
        assert [type(s) for s in block.statements] == [DoBind, DoExpr]
        inner = block.statements[0].expr
        assert isinstance(inner, DoBlock)
        assert [type(s) for s in inner.statements] == [DoExpr, DoExpr]

    def test_foreign_import(self):
        decl = parse('module A where\nforeign import log "function log(s) {}" :: String -> Eff Unit\n')[0].declarations[0]
        assert isinstance(decl, ForeignDecl)
        assert decl.js == "function log(s) {}"
        assert decl.type_text == "String -> Eff Unit"

    def test_missing_module_header(self):
        with pytest.raises(ParseError) as exc:
            parse("x = 1\n")
        assert "'module'" in str(exc.value)

    def test_unclosed_paren(self):
        with pytest.raises(ParseError) as exc:
            parse("module A where\nx = (1 + 2\n", filename="A.purs")
        assert "Expected ')'" in str(exc.value)
        assert exc.value.errors[0].kind == ErrorKind.SYNTAX_ERROR

    def test_indented_declaration_rejected(self):
        with pytest.raises(ParseError):
            parse("module A where\n  x = 1\n")

    def test_parse_modules_labels_units(self):
        with pytest.raises(ParseError) as exc:
            parse_modules([(None, "module A where\n"), ("B.purs", "module B where\nx =\n")])
        assert "B.purs" in str(exc.value)

    def test_prelude_parses(self):
        modules = parse_modules([(None, PRELUDE)])
        assert [m.name for m in modules] == ["Prelude"]
        assert "trace" in modules[0].declaration_names()


class TestChecker:

    def test_modules_sorted_by_imports(self):
        modules = parse("module B where\nimport A\ny = x\nmodule A where\nx = 1\n")
        ordered = check_modules(modules, make_options(no_prelude=True))
        assert [m.name for m in ordered] == ["A", "B"]

    def test_names_resolved(self):
        modules = parse("module A where\nx = 1\nmodule B where\nimport A\ny = x\nz = A.x\n")
        ordered = check_modules(modules, make_options(no_prelude=True))
        y, z = ordered[1].declarations
        assert isinstance(y.body, Var) and y.body.resolved == "A"
        assert z.body.resolved == "A"

    def test_locals_shadow_top_level(self):
        modules = parse("module A where\nx = 1\nf x = x\n")
        ordered = check_modules(modules, make_options(no_prelude=True))
        assert ordered[0].declarations[1].body.resolved is None

    def test_unknown_value(self):
        with pytest.raises(CompileError) as exc:
            check_modules(parse("module A where\nx = nope\n"), make_options(no_prelude=True))
        assert "Unknown value 'nope'" in str(exc.value)

    def test_verbose_errors_add_context(self):
        modules = parse("module A where\nx = nope\n", filename="A.purs")
        with pytest.raises(CompileError) as exc:
            check_modules(modules, make_options(no_prelude=True, verbose_errors=True))
        text = str(exc.value)
        assert "A.purs:2:5" in text
        assert "in value declaration x" in text
        assert "in module A" in text

    def test_errors_serialise_to_json(self):
        modules = parse("module A where\nx = nope\ny = gone\n", filename="A.purs")
        with pytest.raises(CompileError) as exc:
            check_modules(modules, make_options(no_prelude=True))
        payload = json.loads(exc.value.to_json())
        assert payload == [
            {
                "kind": "name_error",
                "message": "Unknown value 'nope'",
                "location": {"file": "A.purs", "line": 2, "column": 5},
                "context": ["value declaration x", "module A"],
            },
            {
                "kind": "name_error",
                "message": "Unknown value 'gone'",
                "location": {"file": "A.purs", "line": 3, "column": 5},
                "context": ["value declaration y", "module A"],
            },
        ]
        assert json.loads(exc.value.errors[0].to_json()) == payload[0]

    def test_terse_errors_omit_context(self):
        with pytest.raises(CompileError) as exc:
            check_modules(parse("module A where\nx = nope\n"), make_options(no_prelude=True))
        assert "in value declaration" not in str(exc.value)

    def test_all_errors_collected(self):
        with pytest.raises(CompileError) as exc:
            check_modules(parse("module A where\nx = a\ny = b\n"), make_options(no_prelude=True))
        assert len(exc.value.errors) == 2

    def test_unknown_import(self):
        with pytest.raises(CompileError) as exc:
            check_modules(parse("module A where\nimport Missing\n"), make_options(no_prelude=True))
        assert "Unknown module 'Missing'" in str(exc.value)

    def test_import_cycle(self):
        modules = parse("module A where\nimport B\nmodule B where\nimport A\n")
        with pytest.raises(CompileError) as exc:
            check_modules(modules, make_options(no_prelude=True))
        assert "Cycle" in str(exc.value)

    def test_duplicate_module(self):
        with pytest.raises(CompileError) as exc:
            check_modules(parse("module A where\nmodule A where\n"), make_options(no_prelude=True))
        assert "more than once" in str(exc.value)

    def test_duplicate_declaration(self):
        with pytest.raises(CompileError):
            check_modules(parse("module A where\nx = 1\nx = 2\n"), make_options(no_prelude=True))

    def test_signature_without_definition(self):
        with pytest.raises(CompileError) as exc:
            check_modules(parse("module A where\nx :: Int\n"), make_options(no_prelude=True))
        assert "should be followed by its definition" in str(exc.value)

    def test_ambiguous_import(self):
        modules = parse(
            "module A where\nx = 1\n"
            "module B where\nx = 2\n"
            "module C where\nimport A\nimport B\ny = x\n"
        )
        with pytest.raises(CompileError) as exc:
            check_modules(modules, make_options(no_prelude=True))
        assert "Ambiguous" in str(exc.value)

    def test_qualified_name_requires_import(self):
        modules = parse("module A where\nx = 1\nmodule B where\ny = A.x\n")
        with pytest.raises(CompileError) as exc:
            check_modules(modules, make_options(no_prelude=True))
        assert "not imported" in str(exc.value)

    def test_implicit_prelude_import(self):
        modules = parse_modules([(None, PRELUDE), ("M.purs", "module M where\nx = id 1\n")])
        ordered = check_modules(modules, make_options())
        assert ordered[0].name == "Prelude"
        assert ordered[1].declarations[0].body.func.resolved == "Prelude"

    def test_no_implicit_import_without_prelude_module(self):
        with pytest.raises(CompileError):
            check_modules(parse("module M where\nx = id 1\n"), make_options())


class TestPipeline:

    def test_constant_folding(self):
        js, _ = compile_text(
            "module A where\n"
            "x = 2 + 3 * 4\n"
            "y = if 1 < 2 then \"a\" else \"b\"\n"
            "s = \"a\" <> \"b\"\n"
            "b = true && false\n"
            "n = -5\n"
        )
        assert "var x = 14;" in js
        assert 'var y = "a";' in js
        assert 'var s = "ab";' in js
        assert "var b = false;" in js
        assert "var n = -5;" in js

    def test_no_opts_skips_folding(self):
        js, _ = compile_text("module A where\nx = 2 + 3 * 4\n", no_optimizations=True)
        assert "var x = 2 + (3 * 4);" in js

    def test_folding_stays_within_exact_doubles(self):
        js, _ = compile_text(
            "module A where\n"
            "x = 4503599627370496 * 2\n"
            "y = 9007199254740992 + 1\n"
            "z = 9007199254740993 - 9007199254740992\n"
        )
        assert "var x = 9007199254740992;" in js
        assert "var y = 9007199254740992 + 1;" in js
        assert "var z = 9007199254740993 - 9007199254740992;" in js

    def test_input_modules_not_modified(self):
        modules = parse_modules([(None, PRELUDE), ("A.purs", "module A where\nx = show 1\n")])
        first = compile_modules(make_options(), modules, [])
        user = modules[1]
        assert user.imported_modules() == []
        assert user.declarations[0].body.func.resolved is None
        assert compile_modules(make_options(), modules, []) == first

    def test_tail_call_optimization(self):
        source = "module Loop where\ncount n acc = if n == 0 then acc else count (n - 1) (acc + 1)\n"
        js, _ = compile_text(source)
        assert "tco: while (true) {" in js
        assert "var $tco_n = n - 1;" in js
        assert "continue tco;" in js

    def test_no_tco(self):
        source = "module Loop where\ncount n acc = if n == 0 then acc else count (n - 1) (acc + 1)\n"
        js, _ = compile_text(source, no_tco=True)
        assert "tco:" not in js
        assert "count(n - 1)(acc + 1)" in js

    def test_non_tail_recursion_not_rewritten(self):
        js, _ = compile_text("module A where\nfact n = if n == 0 then 1 else n * fact (n - 1)\n")
        assert "tco:" not in js

    def test_magic_do(self):
        source = (
            "module Main where\n"
            "main = do\n"
            "  x <- pureE 1\n"
            "  trace (show x)\n"
        )
        units = [(None, PRELUDE), ("Main.purs", source)]
        js, _ = compile_modules(make_options(), parse_modules(units), [])
        assert 'var x = _ps["Prelude"].pureE(1)();' in js
        assert "$bind" not in js

    def test_no_magic_do_uses_bind_helper(self):
        source = (
            "module Main where\n"
            "main = do\n"
            "  x <- pureE 1\n"
            "  trace (show x)\n"
        )
        units = [(None, PRELUDE), ("Main.purs", source)]
        js, _ = compile_modules(make_options(no_magic_do=True), parse_modules(units), [])
        assert "var $bind = function (m) {" in js
        assert '$bind(_ps["Prelude"].pureE(1))(function (x) {' in js

    def test_reserved_words_escaped(self):
        js, _ = compile_text("module A where\nnew x = x\ny = new 1\n")
        assert "var $$new = function (x) {" in js
        assert '"new": $$new' in js

    def test_declarations_follow_dependencies(self):
        js, _ = compile_text("module A where\na = b + 1\nb = 2\n", no_optimizations=True)
        assert js.index("var b = 2;") < js.index("var a = b + 1;")

    def test_dead_code_elimination(self):
        source = (
            "module A where\nused = 1\nunused = 2\n"
            "module C where\nz = 3\n"
            "module Main where\nimport A\nmain = used\n"
        )
        js, externs = compile_text(source, dce_modules=["Main"])
        assert "var used = 1;" in js
        assert "unused" not in js
        assert '_ps["C"]' not in js
        assert "unused" not in externs

    def test_dce_with_no_opts(self):
        source = "module A where\nused = 1\nunused = 2\nmodule Main where\nimport A\nmain = used\n"
        js, _ = compile_text(source, dce_modules=["Main"], no_optimizations=True)
        assert "unused" not in js

    def test_codegen_modules_restrict_output(self):
        source = "module A where\nx = 1\nmodule Main where\nimport A\nmain = x\n"
        js, externs = compile_text(source, codegen_modules=["Main"])
        assert '_ps["A"] = (function () {' not in js
        assert '_ps["Main"] = (function () {' in js
        assert externs.startswith("module Main where")

    def test_unknown_module_flags(self):
        with pytest.raises(CompileError) as exc:
            compile_text("module A where\nx = 1\n", dce_modules=["Nope"], codegen_modules=["Gone"])
        assert len(exc.value.errors) == 2

    def test_main_call(self):
        js, _ = compile_text("module Main where\nmain = 1\n", main="Main")
        assert js.splitlines()[-4] == '    _ps["Main"].main();'

    def test_missing_main_module(self):
        with pytest.raises(CompileError) as exc:
            compile_text("module A where\nx = 1\n", main="Main")
        assert "not found" in str(exc.value)

    def test_main_module_without_main(self):
        with pytest.raises(CompileError) as exc:
            compile_text("module Main where\nx = 1\n", main="Main")
        assert "does not define 'main'" in str(exc.value)

    def test_browser_namespace(self):
        js, _ = compile_text("module A where\nx = 1\n", browser_namespace="App")
        assert 'window["App"] = window["App"] || {}' in js

    def test_prefix_lines(self):
        modules = parse_modules([("A.purs", "module A where\nx = 1\n")])
        js, _ = compile_modules(make_options(no_prelude=True), modules, ["Generated by psc version 1.2.3"])
        assert js.startswith("// Generated by psc version 1.2.3\n")

    def test_externs(self):
        source = "module A where\nx :: Int\nx = 1\ny = 2\nmodule B where\nimport A\nz = x\n"
        _, externs = compile_text(source)
        assert externs == (
            "module A where\n"
            "x :: Int\n"
            "y :: _\n"
            "\n"
            "module B where\n"
            "import A\n"
            "z :: _\n"
        )
