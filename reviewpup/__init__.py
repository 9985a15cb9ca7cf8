"""Filter linter diagnostics by diff and report them as GitHub check runs."""

__version__ = "0.1.0"