"""ka CLI: record, inspect and shift the history of a directory tree."""

from ._helpers import main  # noqa: F401 (entry point)

# Import command modules to register Click commands with the main group.
from . import _basic, _query  # noqa: F401
