"""Domain models and deterministic naming rules for the history migration."""

from wiki2git.migration.domain.errors import (
    AuthorMapError,
    ConversionError,
    IntegrationError,
    RepositoryOpenError,
    Wiki2GitError,
    WikiFetchError,
)
from wiki2git.migration.domain.models import (
    AuthorIdentity,
    BranchState,
    Committer,
    MigrationSummary,
    PageResult,
    ReplayOutcome,
    ReplayStep,
    Revision,
    WikiPage,
)
from wiki2git.migration.domain.rules import encode_branch_name, encode_file_path

__all__ = [
    "AuthorIdentity",
    "AuthorMapError",
    "BranchState",
    "Committer",
    "ConversionError",
    "encode_branch_name",
    "encode_file_path",
    "IntegrationError",
    "MigrationSummary",
    "PageResult",
    "ReplayOutcome",
    "ReplayStep",
    "RepositoryOpenError",
    "Revision",
    "Wiki2GitError",
    "WikiFetchError",
    "WikiPage",
]
