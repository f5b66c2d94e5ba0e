"""Compiler options — the immutable record of behaviour toggles for one run.

Options are built once, before any input is read, and handed unchanged to
the compiler core. Every flag composes with every other flag: there is no
invalid combination.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional


DEFAULT_BROWSER_NAMESPACE = "PS"
DEFAULT_MAIN_MODULE = "Main"


def ordered_set(values: Iterable[str]) -> tuple[str, ...]:
    """Collapse repeated values, keeping the position of the first one."""
    seen: dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return tuple(seen)


@dataclass(frozen=True)
class CodeGenOptions:
    browser_namespace: str = DEFAULT_BROWSER_NAMESPACE
    # Non-empty enables dead code elimination rooted at these modules
    dce_modules: tuple[str, ...] = ()
    # Non-empty restricts JS and externs output to these modules
    codegen_modules: tuple[str, ...] = ()


@dataclass(frozen=True)
class CompilerOptions:
    no_prelude: bool = False
    no_tco: bool = False
    no_magic_do: bool = False
    main: Optional[str] = None
    no_optimizations: bool = False
    verbose_errors: bool = False
    codegen: CodeGenOptions = field(default_factory=CodeGenOptions)

    @property
    def tco(self) -> bool:
        return not (self.no_optimizations or self.no_tco)

    @property
    def magic_do(self) -> bool:
        return not (self.no_optimizations or self.no_magic_do)


@dataclass(frozen=True)
class DriverOptions:
    """Everything one invocation of the driver needs."""
    input_files: tuple[str, ...] = ()
    options: CompilerOptions = field(default_factory=CompilerOptions)
    use_stdin: bool = False
    output: Optional[str] = None
    externs: Optional[str] = None
    use_prefix: bool = True


def resolve_main(flag_given: bool, value: Optional[str] = None) -> Optional[str]:
    """Collapse the tri-state entry module flag.

    Absent gives None, a bare flag gives "Main", and a flag with a value
    gives that value. An empty value is rejected.
    """
    if not flag_given:
        return None
    if value is None:
        return DEFAULT_MAIN_MODULE
    if not value:
        raise ValueError("the entry module name must not be empty")
    return value


def make_options(
    no_prelude: bool = False,
    no_tco: bool = False,
    no_magic_do: bool = False,
    main: Optional[str] = None,
    no_optimizations: bool = False,
    verbose_errors: bool = False,
    browser_namespace: str = DEFAULT_BROWSER_NAMESPACE,
    dce_modules: Iterable[str] = (),
    codegen_modules: Iterable[str] = (),
) -> CompilerOptions:
    """Build a CompilerOptions from independent flags."""
    return CompilerOptions(
        no_prelude=bool(no_prelude),
        no_tco=bool(no_tco),
        no_magic_do=bool(no_magic_do),
        main=main,
        no_optimizations=bool(no_optimizations),
        verbose_errors=bool(verbose_errors),
        codegen=CodeGenOptions(
            browser_namespace=browser_namespace,
            dce_modules=ordered_set(dce_modules),
            codegen_modules=ordered_set(codegen_modules),
        ),
    )
