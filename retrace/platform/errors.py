"""
Error types raised at the application boundary.

The graph and ranking functions never raise; these errors belong to the
layer that wires them to application state.
"""

from __future__ import annotations


class RetraceError(Exception):
    """Base class for Retrace errors."""


class MissingContext(RetraceError):
    """
    Inference was requested before the required context was loaded.

    ``missing`` names what was absent, e.g. ``["episode", "graph"]``.
    """

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"{' and '.join(self.missing)} not loaded")
