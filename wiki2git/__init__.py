"""Migrate a wiki's full edit history into a git repository."""

__version__ = "0.1.0"
