"""Wiki edit history to git migration."""

from wiki2git.migration.domain.models import MigrationSummary
from wiki2git.migration.migrate import run_migration, run_migration_async

__all__ = [
    "MigrationSummary",
    "run_migration",
    "run_migration_async",
]
