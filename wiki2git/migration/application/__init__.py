"""Ports and workflows that drive the migration."""
