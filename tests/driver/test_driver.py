"""Driver tests — the full run from inputs to exit code.

Covers the end-to-end behaviour: stage short-circuiting, exit codes,
stream routing and reproducibility of generated output.
"""

import io

import pytest

import psc.driver
from psc.driver import (
    EXIT_FAILURE, EXIT_SUCCESS, Failure, Stage, Success,
    compile_sources, prefix_lines, run,
)
from psc.inputs import SourceUnit
from psc.options import DriverOptions, make_options
from psc.prelude import PRELUDE

MODULE_A = """module A where

greeting :: String
greeting = "Hello"
"""

MODULE_B = """module B where

import A

message = greeting <> ", world"
"""

HELLO_MAIN = """module Main where

main = do
  let name = "psc"
  trace ("Hello, " <> name)
"""


def write(path, text):
    path.write_text(text, encoding="utf-8")
    return str(path)


def run_captured(driver_options, stdin=None):
    out, err = io.StringIO(), io.StringIO()
    code = run(driver_options, "0.5.0", stdin=stdin, stdout=out, stderr=err)
    return code, out.getvalue(), err.getvalue()


class TestPrefixLines:

    def test_with_prefix(self):
        assert prefix_lines(True, "1.2.3") == ["Generated by psc version 1.2.3"]

    def test_without_prefix(self):
        assert prefix_lines(False, "1.2.3") == []


class TestEndToEnd:

    def test_two_modules_without_prelude(self, tmp_path):
        a = write(tmp_path / "A.purs", MODULE_A)
        b = write(tmp_path / "B.purs", MODULE_B)
        out = tmp_path / "out" / "app.js"
        driver_options = DriverOptions(
            input_files=(a, b),
            options=make_options(no_prelude=True),
            output=str(out),
        )
        code, stdout, stderr = run_captured(driver_options)
        assert code == EXIT_SUCCESS
        assert stdout == "" and stderr == ""
        js = out.read_text(encoding="utf-8")
        assert js
        assert "greeting" in js
        assert "message" in js
        assert '_ps["A"].greeting' in js
        assert js.startswith("// Generated by psc version 0.5.0")

    def test_code_to_stdout_when_no_output(self, tmp_path):
        a = write(tmp_path / "A.purs", MODULE_A)
        driver_options = DriverOptions(input_files=(a,), options=make_options(no_prelude=True))
        code, stdout, _ = run_captured(driver_options)
        assert code == EXIT_SUCCESS
        assert 'var greeting = "Hello";' in stdout

    def test_with_prelude_and_main(self, tmp_path):
        main = write(tmp_path / "Main.purs", HELLO_MAIN)
        out = tmp_path / "app.js"
        ext = tmp_path / "app.e.purs"
        driver_options = DriverOptions(
            input_files=(main,),
            options=make_options(main="Main"),
            output=str(out),
            externs=str(ext),
            use_prefix=False,
        )
        code, _, stderr = run_captured(driver_options)
        assert code == EXIT_SUCCESS, stderr
        js = out.read_text(encoding="utf-8")
        assert js.startswith("(function (_ps) {")
        assert '_ps["Prelude"] = (function () {' in js
        assert '_ps["Main"].main();' in js
        externs = ext.read_text(encoding="utf-8")
        assert "module Prelude where" in externs
        assert "module Main where\nmain :: _\n" in externs

    def test_invalid_syntax_writes_nothing(self, tmp_path):
        bad = write(tmp_path / "Bad.purs", "module Bad where\nx = (1 +\n")
        out = tmp_path / "dist" / "app.js"
        ext = tmp_path / "dist" / "app.e.purs"
        driver_options = DriverOptions(
            input_files=(bad,),
            options=make_options(no_prelude=True),
            output=str(out),
            externs=str(ext),
        )
        code, stdout, stderr = run_captured(driver_options)
        assert code == EXIT_FAILURE
        assert stdout == ""
        assert "Bad.purs" in stderr
        assert not (tmp_path / "dist").exists()

    def test_compile_error(self, tmp_path):
        b = write(tmp_path / "B.purs", MODULE_B)
        driver_options = DriverOptions(input_files=(b,), options=make_options(no_prelude=True))
        code, stdout, stderr = run_captured(driver_options)
        assert code == EXIT_FAILURE
        assert stdout == ""
        assert "Unknown module 'A'" in stderr

    def test_verbose_compile_error(self, tmp_path):
        a = write(tmp_path / "A.purs", "module A where\nx = nope\n")
        driver_options = DriverOptions(
            input_files=(a,),
            options=make_options(no_prelude=True, verbose_errors=True),
        )
        code, _, stderr = run_captured(driver_options)
        assert code == EXIT_FAILURE
        assert "in value declaration x" in stderr

    def test_write_error(self, tmp_path):
        a = write(tmp_path / "A.purs", MODULE_A)
        driver_options = DriverOptions(
            input_files=(a,),
            options=make_options(no_prelude=True),
            output=str(tmp_path),
        )
        code, _, stderr = run_captured(driver_options)
        assert code == EXIT_FAILURE
        assert "Unable to write" in stderr


class TestReadFailure:

    def test_no_parse_or_compile_after_read_error(self, tmp_path, monkeypatch):
        a = write(tmp_path / "A.purs", MODULE_A)
        missing = str(tmp_path / "Missing.purs")
        calls = []
        monkeypatch.setattr(psc.driver, "parse_modules", lambda units: calls.append("parse"))
        monkeypatch.setattr(psc.driver, "compile_modules", lambda *a: calls.append("compile"))
        driver_options = DriverOptions(input_files=(a, missing), options=make_options())
        code, stdout, stderr = run_captured(driver_options)
        assert code == EXIT_FAILURE
        assert calls == []
        assert stdout == ""
        assert missing in stderr


class TestStdin:

    def test_stdin_compiles_standalone(self):
        driver_options = DriverOptions(use_stdin=True, options=make_options())
        code, stdout, stderr = run_captured(driver_options, stdin=io.StringIO(MODULE_A))
        assert code == EXIT_SUCCESS, stderr
        assert 'var greeting = "Hello";' in stdout
        assert "Prelude" not in stdout

    def test_stdin_ignores_files(self, tmp_path):
        b = write(tmp_path / "B.purs", MODULE_B)
        driver_options = DriverOptions(input_files=(b,), use_stdin=True, options=make_options())
        code, stdout, _ = run_captured(driver_options, stdin=io.StringIO(MODULE_A))
        assert code == EXIT_SUCCESS
        assert "message" not in stdout


class TestCompileSources:

    def test_single_parse_and_compile(self, monkeypatch):
        calls = []
        real_parse, real_compile = psc.driver.parse_modules, psc.driver.compile_modules

        def parse_spy(units):
            calls.append("parse")
            return real_parse(units)

        def compile_spy(*args):
            calls.append("compile")
            return real_compile(*args)

        monkeypatch.setattr(psc.driver, "parse_modules", parse_spy)
        monkeypatch.setattr(psc.driver, "compile_modules", compile_spy)
        outcome = compile_sources(make_options(), [SourceUnit(None, PRELUDE)], [])
        assert isinstance(outcome, Success)
        assert calls == ["parse", "compile"]

    def test_parse_stage_failure(self):
        outcome = compile_sources(make_options(no_prelude=True), [SourceUnit("X.purs", "module\n")], [])
        assert isinstance(outcome, Failure)
        assert outcome.stage == Stage.PARSE

    def test_compile_stage_failure(self):
        outcome = compile_sources(make_options(no_prelude=True), [SourceUnit("X.purs", "module X where\ny = z\n")], [])
        assert isinstance(outcome, Failure)
        assert outcome.stage == Stage.COMPILE

    def test_origins_only_label_diagnostics(self):
        units = [SourceUnit("A.purs", MODULE_A)]
        relabelled = [SourceUnit("Other.purs", MODULE_A)]
        options = make_options(no_prelude=True)
        assert compile_sources(options, units, []) == compile_sources(options, relabelled, [])


class TestIdempotence:

    @pytest.mark.parametrize("flags", [
        {},
        {"no_opts": True},
        {"no_tco": True, "no_magic_do": True},
        {"dce": ["Main"]},
    ])
    def test_identical_runs_identical_output(self, tmp_path, flags):
        main = write(tmp_path / "Main.purs", HELLO_MAIN)
        results = []
        for attempt in range(2):
            out = tmp_path / f"run{attempt}" / "app.js"
            ext = tmp_path / f"run{attempt}" / "app.e.purs"
            options = make_options(
                no_optimizations=flags.get("no_opts", False),
                no_tco=flags.get("no_tco", False),
                no_magic_do=flags.get("no_magic_do", False),
                dce_modules=flags.get("dce", ()),
                main="Main",
            )
            driver_options = DriverOptions(input_files=(main,), options=options, output=str(out), externs=str(ext))
            code, _, stderr = run_captured(driver_options)
            assert code == EXIT_SUCCESS, stderr
            results.append((out.read_bytes(), ext.read_bytes()))
        assert results[0] == results[1]
