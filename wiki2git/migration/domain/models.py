from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

FALLBACK_AUTHOR_NAME = "Unknown author"
FALLBACK_AUTHOR_EMAIL = "unknown-email@example.com"


@dataclass(frozen=True)
class WikiPage:
    pageid: int
    title: str
    namespace: int = 0


@dataclass(frozen=True)
class Revision:
    revid: int
    timestamp: datetime
    user: str
    comment: str
    content: str


@dataclass(frozen=True)
class AuthorIdentity:
    name: str
    email: str

    @classmethod
    def fallback(cls, username: str) -> "AuthorIdentity":
        return cls(name=username or FALLBACK_AUTHOR_NAME, email=FALLBACK_AUTHOR_EMAIL)


@dataclass(frozen=True)
class Committer:
    name: str = "wiki2git"
    email: str = "wiki2git@localhost"


@dataclass(frozen=True)
class BranchState:
    created: bool
    resume_point: datetime | None = None


class ReplayOutcome(str, Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class ReplayStep:
    commit: str
    outcome: ReplayOutcome
    reason: str | None = None


@dataclass(frozen=True)
class PageResult:
    page: WikiPage
    branch_name: str
    file_path: str
    created_branch: bool
    resume_point: datetime | None
    fetched: int
    committed: int
    skipped_empty: int
    skipped_conversion: int
    integrated: bool
    replay_steps: tuple[ReplayStep, ...] = field(default_factory=tuple)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "pageid": self.page.pageid,
            "title": self.page.title,
            "namespace": self.page.namespace,
            "branch_name": self.branch_name,
            "file_path": self.file_path,
            "created_branch": self.created_branch,
            "resume_point": self.resume_point.isoformat() if self.resume_point else None,
            "fetched": self.fetched,
            "committed": self.committed,
            "skipped_empty": self.skipped_empty,
            "skipped_conversion": self.skipped_conversion,
            "integrated": self.integrated,
            "replay_steps": [
                {"commit": step.commit, "outcome": step.outcome.value, "reason": step.reason}
                for step in self.replay_steps
            ],
            "error": self.error,
        }


@dataclass(frozen=True)
class MigrationSummary:
    pages_total: int
    revisions_fetched: int
    commits_created: int
    revisions_skipped: int
    pages_integrated: int
    pages_failed: int
    page_results: tuple[PageResult, ...] = field(default_factory=tuple)

    @classmethod
    def from_results(cls, results: list[PageResult]) -> "MigrationSummary":
        return cls(
            pages_total=len(results),
            revisions_fetched=sum(r.fetched for r in results),
            commits_created=sum(r.committed for r in results),
            revisions_skipped=sum(r.skipped_empty + r.skipped_conversion for r in results),
            pages_integrated=sum(1 for r in results if r.integrated),
            pages_failed=sum(1 for r in results if r.error is not None),
            page_results=tuple(results),
        )
