"""Snitch - project-scoped capture with inline reference links."""

__version__ = "0.1.0"
