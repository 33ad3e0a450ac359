from __future__ import annotations

import asyncio
from dataclasses import replace
from pathlib import Path
from typing import Iterable

from wiki2git.config.logger_config import logger
from wiki2git.config.settings import Settings, load_settings
from wiki2git.migration.application.workflows.migrate_history import (
    MigrateHistoryWorkflow,
    MigrationWorkflowConfig,
)
from wiki2git.migration.domain.models import Committer, MigrationSummary
from wiki2git.migration.infrastructure.author_map import AuthorMap
from wiki2git.migration.infrastructure.git_store import GitHistoryStore
from wiki2git.migration.infrastructure.integrator import BranchIntegrator
from wiki2git.migration.infrastructure.mw_client import MediaWikiClient
from wiki2git.migration.infrastructure.pandoc import PandocConverter
from wiki2git.migration.infrastructure.xml_dump import XmlDumpSource

DEFAULT_OUTPUT_DIR = Path("output")


async def run_migration_async(
    *,
    base_url: str | None = None,
    dump_files: Iterable[str | Path] = (),
    output_dir: str | Path = DEFAULT_OUTPUT_DIR,
    author_map_path: str | Path | None = None,
    page_limit: int | None = None,
    revision_limit: int | None = None,
    namespaces: Iterable[int] = (0,),
    strict_conversion: bool = False,
    continue_on_integration_error: bool = False,
    workflow_config: MigrationWorkflowConfig | None = None,
    settings: Settings | None = None,
    show_progress: bool = True,
) -> MigrationSummary:
    dump_paths = tuple(Path(p) for p in dump_files)
    if bool(base_url) == bool(dump_paths):
        raise ValueError("Exactly one wiki source is required: a base URL or one or more dump files.")

    settings = settings or load_settings()
    if base_url:
        source = MediaWikiClient(base_url=base_url, user_agent=settings.user_agent)
        logger.info("Migrating from {}", source.base_url)
    else:
        source = XmlDumpSource(dump_paths)
        logger.info("Migrating from {} dump file(s)", len(dump_paths))

    authors = AuthorMap.load(author_map_path) if author_map_path else AuthorMap.empty()
    converter = PandocConverter(pandoc_path=settings.pandoc_path)
    committer = Committer(name=settings.committer_name, email=settings.committer_email)
    store = GitHistoryStore.create_repository(output_dir, committer)
    config = replace(
        workflow_config or MigrationWorkflowConfig(),
        namespaces=tuple(namespaces),
        page_limit=page_limit,
        revision_limit=revision_limit,
        strict_conversion=strict_conversion,
        continue_on_integration_error=continue_on_integration_error,
        show_progress=show_progress,
    )
    workflow = MigrateHistoryWorkflow(
        source=source,
        converter=converter,
        authors=authors,
        store=store,
        integrator=BranchIntegrator(store.repo, committer),
        config=config,
    )
    try:
        return await workflow.run()
    finally:
        store.close()


def run_migration(
    *,
    base_url: str | None = None,
    dump_files: Iterable[str | Path] = (),
    output_dir: str | Path = DEFAULT_OUTPUT_DIR,
    author_map_path: str | Path | None = None,
    page_limit: int | None = None,
    revision_limit: int | None = None,
    namespaces: Iterable[int] = (0,),
    strict_conversion: bool = False,
    continue_on_integration_error: bool = False,
    workflow_config: MigrationWorkflowConfig | None = None,
    settings: Settings | None = None,
    show_progress: bool = True,
) -> MigrationSummary:
    return asyncio.run(
        run_migration_async(
            base_url=base_url,
            dump_files=dump_files,
            output_dir=output_dir,
            author_map_path=author_map_path,
            page_limit=page_limit,
            revision_limit=revision_limit,
            namespaces=namespaces,
            strict_conversion=strict_conversion,
            continue_on_integration_error=continue_on_integration_error,
            workflow_config=workflow_config,
            settings=settings,
            show_progress=show_progress,
        )
    )
