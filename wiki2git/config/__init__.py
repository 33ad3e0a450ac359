"""Logging and settings."""
