from datetime import datetime
from typing import Any, Protocol, Sequence, runtime_checkable

from wiki2git.migration.domain.models import AuthorIdentity, BranchState, ReplayStep, Revision, WikiPage


@runtime_checkable
class WikiSourcePort(Protocol):
    async def fetch_page_batch(
        self,
        session: Any,
        continuation: Any,
        namespace: int,
        limit: int = 50,
    ) -> tuple[Sequence[WikiPage], Any]:
        """Return one batch of pages and the token for the next one (None when exhausted)."""
        ...

    async def fetch_revision_batch(
        self,
        session: Any,
        pageid: int,
        continuation: Any,
        after_timestamp: datetime | None,
        limit: int = 50,
    ) -> tuple[Sequence[Revision], Any]:
        """Return revisions strictly newer than after_timestamp, oldest first."""
        ...


@runtime_checkable
class ConverterPort(Protocol):
    async def convert(self, raw_markup: str) -> bytes: ...


@runtime_checkable
class AuthorLookupPort(Protocol):
    def lookup(self, username: str) -> AuthorIdentity | None: ...


@runtime_checkable
class HistoryStorePort(Protocol):
    def ensure_page_branch(self, branch_name: str, file_path: str | None = None) -> BranchState: ...

    def commit_revision(
        self,
        branch_name: str,
        file_path: str,
        content: bytes,
        author: AuthorIdentity,
        authored_at: datetime,
        message: str,
    ) -> str | None: ...


@runtime_checkable
class IntegratorPort(Protocol):
    def integrate(
        self,
        page_branch: str,
        trunk_branch: str = "master",
        title: str | None = None,
    ) -> list[ReplayStep]: ...
