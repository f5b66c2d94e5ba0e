"""psc compiler core — lexer, parser, checker, optimizer, DCE and JS codegen."""

from .lexer import Lexer, tokenize
from .parser import Parser, parse, parse_modules
from .ast_nodes import *
from .checker import check_modules
from .optimizer import fold_constants, optimize_module
from .dce import eliminate_dead_code
from .codegen import render_program
from .externs import render_externs
from .pipeline import compile_modules
