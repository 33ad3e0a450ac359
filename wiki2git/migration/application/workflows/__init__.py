"""Workflows composing the migration stages."""
