import asyncio
from dataclasses import dataclass, field
from datetime import datetime

import aiohttp
from tqdm import tqdm

from wiki2git.config.logger_config import logger
from wiki2git.migration.application.ports import (
    AuthorLookupPort,
    ConverterPort,
    HistoryStorePort,
    IntegratorPort,
    WikiSourcePort,
)
from wiki2git.migration.domain.errors import ConversionError, IntegrationError
from wiki2git.migration.domain.models import (
    AuthorIdentity,
    MigrationSummary,
    PageResult,
    ReplayStep,
    Revision,
    WikiPage,
)
from wiki2git.migration.domain.rules import (
    build_commit_message,
    encode_branch_name,
    encode_file_path,
)

ConvertedRevision = tuple[Revision, bytes]


@dataclass(frozen=True)
class MigrationWorkflowConfig:
    namespaces: tuple[int, ...] = (0,)
    page_limit: int | None = None
    revision_limit: int | None = None
    page_batch_size: int = 50
    revision_batch_size: int = 50
    page_queue_size: int = 8
    revision_queue_size: int = 32
    trunk_branch: str = "master"
    strict_conversion: bool = False
    continue_on_integration_error: bool = False
    connector_limit: int = 0
    connector_limit_per_host: int = 10
    connector_ttl_dns_cache: int = 300
    show_progress: bool = True


@dataclass
class _PageTally:
    fetched: int = 0
    committed: int = 0
    skipped_empty: int = 0
    skipped_conversion: int = 0
    replay_steps: list[ReplayStep] = field(default_factory=list)


class MigrateHistoryWorkflow:
    """Page listing -> revision listing -> conversion -> commit -> integration.

    Stages are joined by bounded queues so fetching cannot run far ahead of
    committing. Only the coroutine driving ``run`` touches the repository;
    fetch and conversion tasks hand their results over through the queues.
    """

    def __init__(
        self,
        source: WikiSourcePort,
        converter: ConverterPort,
        authors: AuthorLookupPort,
        store: HistoryStorePort,
        integrator: IntegratorPort,
        config: MigrationWorkflowConfig | None = None,
    ) -> None:
        self.source = source
        self.converter = converter
        self.authors = authors
        self.store = store
        self.integrator = integrator
        self.config = config or MigrationWorkflowConfig()
        self._warned_users: set[str] = set()

    async def run(self) -> MigrationSummary:
        connector = aiohttp.TCPConnector(
            limit=self.config.connector_limit,
            limit_per_host=self.config.connector_limit_per_host,
            ttl_dns_cache=self.config.connector_ttl_dns_cache,
        )
        async with aiohttp.ClientSession(connector=connector) as session:
            page_queue: asyncio.Queue[WikiPage | None] = asyncio.Queue(maxsize=self.config.page_queue_size)
            page_task = asyncio.create_task(self._produce_pages(session, page_queue))
            results: list[PageResult] = []
            try:
                with tqdm(
                    total=self.config.page_limit,
                    desc="Migrated pages",
                    unit="page",
                    leave=True,
                    disable=not self.config.show_progress,
                ) as progress:
                    while True:
                        page = await page_queue.get()
                        if page is None:
                            break
                        results.append(await self._migrate_page(session, page))
                        progress.update(1)
                await page_task
            finally:
                await self._cancel(page_task)

        summary = MigrationSummary.from_results(results)
        logger.info(
            "Migration finished: pages={}, fetched={}, commits={}, skipped={}, integrated={}, failed={}",
            summary.pages_total,
            summary.revisions_fetched,
            summary.commits_created,
            summary.revisions_skipped,
            summary.pages_integrated,
            summary.pages_failed,
        )
        return summary

    async def _produce_pages(
        self,
        session: aiohttp.ClientSession,
        queue: asyncio.Queue[WikiPage | None],
    ) -> None:
        remaining = self.config.page_limit
        try:
            for namespace in self.config.namespaces:
                continuation = None
                logger.info("Fetching pages in namespace {}", namespace)
                while remaining is None or remaining > 0:
                    pages, continuation = await self.source.fetch_page_batch(
                        session,
                        continuation,
                        namespace,
                        self.config.page_batch_size,
                    )
                    for page in pages:
                        if remaining is not None:
                            if remaining == 0:
                                break
                            remaining -= 1
                        await queue.put(page)
                    if continuation is None:
                        break
        except Exception:
            await queue.put(None)
            raise
        await queue.put(None)

    async def _produce_revisions(
        self,
        session: aiohttp.ClientSession,
        page: WikiPage,
        after: datetime | None,
        queue: asyncio.Queue[Revision | None],
        tally: _PageTally,
    ) -> None:
        remaining = self.config.revision_limit
        continuation = None
        try:
            while remaining is None or remaining > 0:
                batch_size = self.config.revision_batch_size
                if remaining is not None:
                    batch_size = min(batch_size, remaining)
                revisions, continuation = await self.source.fetch_revision_batch(
                    session,
                    page.pageid,
                    continuation,
                    after,
                    batch_size,
                )
                for revision in revisions:
                    if remaining is not None:
                        if remaining == 0:
                            break
                        remaining -= 1
                    tally.fetched += 1
                    await queue.put(revision)
                if continuation is None:
                    break
        except Exception:
            await queue.put(None)
            raise
        await queue.put(None)

    async def _convert_revisions(
        self,
        page: WikiPage,
        revisions: asyncio.Queue[Revision | None],
        documents: asyncio.Queue[ConvertedRevision | None],
        tally: _PageTally,
    ) -> None:
        heading = f"# {page.title}\n\n".encode("utf-8")
        try:
            while True:
                revision = await revisions.get()
                if revision is None:
                    break
                try:
                    body = await self.converter.convert(revision.content)
                except ConversionError as exc:
                    if self.config.strict_conversion:
                        raise ConversionError(
                            f"Conversion of revision {revision.revid} of page '{page.title}' failed: {exc}"
                        ) from exc
                    logger.warning(
                        "Skipping revision {} of page '{}': conversion failed: {}",
                        revision.revid,
                        page.title,
                        exc,
                    )
                    tally.skipped_conversion += 1
                    continue
                await documents.put((revision, heading + body))
        except Exception:
            await documents.put(None)
            raise
        await documents.put(None)

    async def _migrate_page(self, session: aiohttp.ClientSession, page: WikiPage) -> PageResult:
        branch_name = encode_branch_name(page.title, page.namespace)
        file_path = encode_file_path(page.title, page.namespace)
        state = self.store.ensure_page_branch(branch_name, file_path)
        if state.created:
            logger.info("Processing page '{}' on new branch '{}'", page.title, branch_name)
        else:
            logger.info(
                "Processing page '{}' on branch '{}', resuming after {}",
                page.title,
                branch_name,
                state.resume_point.isoformat() if state.resume_point else "the beginning",
            )

        tally = _PageTally()
        revisions: asyncio.Queue[Revision | None] = asyncio.Queue(maxsize=self.config.revision_queue_size)
        documents: asyncio.Queue[ConvertedRevision | None] = asyncio.Queue(maxsize=self.config.revision_queue_size)
        fetch_task = asyncio.create_task(
            self._produce_revisions(session, page, state.resume_point, revisions, tally)
        )
        convert_task = asyncio.create_task(self._convert_revisions(page, revisions, documents, tally))
        try:
            while True:
                item = await documents.get()
                if item is None:
                    break
                revision, document = item
                self._commit_revision(page, branch_name, file_path, revision, document, tally)
            # A failed stage still closes its queue; surface its error before integrating.
            await convert_task
            await fetch_task
        finally:
            await self._cancel(fetch_task, convert_task)

        integrated = True
        error = None
        try:
            tally.replay_steps = self.integrator.integrate(
                branch_name,
                self.config.trunk_branch,
                title=page.title,
            )
        except IntegrationError as exc:
            if not self.config.continue_on_integration_error:
                raise
            logger.error("{}; trunk left at its last integrated state", exc)
            integrated = False
            error = str(exc)

        return PageResult(
            page=page,
            branch_name=branch_name,
            file_path=file_path,
            created_branch=state.created,
            resume_point=state.resume_point,
            fetched=tally.fetched,
            committed=tally.committed,
            skipped_empty=tally.skipped_empty,
            skipped_conversion=tally.skipped_conversion,
            integrated=integrated,
            replay_steps=tuple(tally.replay_steps),
            error=error,
        )

    def _commit_revision(
        self,
        page: WikiPage,
        branch_name: str,
        file_path: str,
        revision: Revision,
        document: bytes,
        tally: _PageTally,
    ) -> None:
        commit = self.store.commit_revision(
            branch_name,
            file_path,
            document,
            self._resolve_author(revision),
            revision.timestamp,
            build_commit_message(revision),
        )
        if commit is None:
            tally.skipped_empty += 1
            logger.debug("Revision {} of page '{}' changes nothing, skipped", revision.revid, page.title)
            return
        tally.committed += 1
        logger.info("Committed revision {} of page '{}' as {}", revision.revid, page.title, commit[:10])

    def _resolve_author(self, revision: Revision) -> AuthorIdentity:
        identity = self.authors.lookup(revision.user)
        if identity is not None:
            return identity
        if revision.user not in self._warned_users:
            self._warned_users.add(revision.user)
            logger.warning(
                "No author mapping for user '{}' (revision {}); using a placeholder identity",
                revision.user,
                revision.revid,
            )
        return AuthorIdentity.fallback(revision.user)

    @staticmethod
    async def _cancel(*tasks: asyncio.Task) -> None:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
