"""promptreg command line."""

from promptreg.cli.main import app

__all__ = ["app"]
