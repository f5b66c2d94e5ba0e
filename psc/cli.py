"""psc CLI — Compiles PureScript-style modules to JavaScript.

Usage:
  psc [FILE...] [-o OUT.js] [-e OUT.e.purs] [options]
  psc --stdin [options] < Main.purs

Defaults for most flags can be kept in a project .pscrc.json; flags given
on the command line win.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from psc import __version__
from psc.config import ConfigError, ProjectConfig, load_config
from psc.driver import EXIT_FAILURE, run
from psc.options import (
    DEFAULT_BROWSER_NAMESPACE, DEFAULT_MAIN_MODULE, DriverOptions,
    make_options, resolve_main,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="psc",
        description="psc - Compiles PureScript to Javascript",
        epilog=f"psc {__version__}",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("files", nargs="*", metavar="FILE", help="The input .purs file(s)")
    parser.add_argument("-s", "--stdin", action="store_true", help="Read from standard input")
    parser.add_argument("-o", "--output", help="The output .js file")
    parser.add_argument("-e", "--externs", help="The output .e.purs file")
    parser.add_argument("-p", "--no-prefix", action="store_true", dest="no_prefix",
                        help="Do not include comment header")
    parser.add_argument("--no-prelude", action="store_true", dest="no_prelude", help="Omit the Prelude")
    parser.add_argument("--no-tco", action="store_true", dest="no_tco", help="Disable tail call optimizations")
    parser.add_argument("--no-magic-do", action="store_true", dest="no_magic_do",
                        help="Disable the optimization that overloads the do keyword to generate "
                             "efficient code specifically for the Eff monad.")
    parser.add_argument("--main", nargs="?", const=DEFAULT_MAIN_MODULE, metavar="MODULE",
                        help="Generate code to run the main method in the specified module. "
                             f"(no argument: \"{DEFAULT_MAIN_MODULE}\"; use --main=MODULE "
                             "when it is followed by input files)")
    parser.add_argument("--no-opts", action="store_true", dest="no_opts", help="Skip the optimization phase.")
    parser.add_argument("-v", "--verbose-errors", action="store_true", dest="verbose_errors",
                        help="Display verbose error messages")
    parser.add_argument("--browser-namespace", dest="browser_namespace", metavar="NAMESPACE",
                        help="Specify the namespace that PureScript modules will be exported to "
                             f"when running in the browser. (default: {DEFAULT_BROWSER_NAMESPACE})")
    parser.add_argument("-m", "--module", action="append", default=[], dest="modules", metavar="MODULE",
                        help="Enables dead code elimination, all code which is not a transitive "
                             "dependency of a specified module will be removed. This argument can "
                             "be used multiple times.")
    parser.add_argument("--codegen", action="append", default=[], metavar="MODULE",
                        help="A list of modules for which Javascript and externs should be "
                             "generated. This argument can be used multiple times.")
    parser.add_argument("--config", help="Path to a .pscrc.json file (default: nearest one found)")
    parser.add_argument("--debug", action="store_true", help="Log each compilation stage to stderr")
    return parser


def driver_options_from_args(args: argparse.Namespace, config: ProjectConfig) -> DriverOptions:
    """Merge parsed flags over project configuration."""
    if args.main is not None:
        main = resolve_main(True, args.main)
    else:
        main = config.main

    options = make_options(
        no_prelude=args.no_prelude or config.no_prelude,
        no_tco=args.no_tco or config.no_tco,
        no_magic_do=args.no_magic_do or config.no_magic_do,
        main=main,
        no_optimizations=args.no_opts or config.no_opts,
        verbose_errors=args.verbose_errors or config.verbose_errors,
        browser_namespace=args.browser_namespace or config.browser_namespace,
        dce_modules=args.modules or config.modules,
        codegen_modules=args.codegen or config.codegen,
    )

    if args.stdin and args.files:
        logger.warning("reading from standard input; ignoring %d input file(s)", len(args.files))

    return DriverOptions(
        input_files=tuple(args.files),
        options=options,
        use_stdin=args.stdin,
        output=args.output or config.output,
        externs=args.externs or config.externs,
        use_prefix=not (args.no_prefix or config.no_prefix),
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_intermixed_args(argv)
    if args.main == "":
        parser.error("argument --main: expected a module name")

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(e, file=sys.stderr)
        sys.exit(EXIT_FAILURE)

    sys.exit(run(driver_options_from_args(args, config), __version__))


if __name__ == "__main__":
    main()
