"""psc — Compiles PureScript-style modules to JavaScript."""

__version__ = "0.5.0"
