"""tmskit CLI.

Command-line interface for transactional releases and template migrations.
"""

# Also the version stamped into managed files by `tmskit migrate`
__version__ = "2.6.0"

from cli.tmskit.cli import app, main

__all__ = ["__version__", "app", "main"]
