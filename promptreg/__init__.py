"""promptreg: resolve prompt bundles from GitHub, GitLab and local folders."""

__version__ = "0.4.0"
