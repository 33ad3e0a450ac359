"""Command line entry point.

\b
Examples:
  python -m wiki2git migrate --url https://wiki.archlinux.org --output output --page-limit 5
  python -m wiki2git migrate --dump ArchWiki.xml --output output --authors authors.csv
"""

from __future__ import annotations

from pathlib import Path

import click

from wiki2git import __version__
from wiki2git.config.logger_config import configure_logging, logger
from wiki2git.config.settings import load_settings
from wiki2git.migration.domain.errors import Wiki2GitError
from wiki2git.migration.migrate import run_migration


@click.group()
@click.version_option(__version__, prog_name="wiki2git")
def cli() -> None:
    """Migrate a wiki's edit history into a git repository."""


@cli.command("migrate")
@click.option("--url", "base_url", default=None, help="Wiki base URL or api.php endpoint.")
@click.option(
    "--dump",
    "dump_files",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="MediaWiki XML export file (repeatable).",
)
@click.option(
    "--output",
    "output_dir",
    required=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Output repository, created when missing.",
)
@click.option(
    "--authors",
    "author_map_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="CSV file with username,name,email rows.",
)
@click.option("--page-limit", type=click.IntRange(min=0), default=None, help="Stop after this many pages.")
@click.option(
    "--revision-limit",
    type=click.IntRange(min=0),
    default=None,
    help="Stop after this many revisions per page.",
)
@click.option(
    "--namespace",
    "namespaces",
    type=int,
    multiple=True,
    default=(0,),
    show_default=True,
    help="Namespace to migrate (repeatable).",
)
@click.option("--strict-conversion", is_flag=True, help="Abort on the first conversion failure.")
@click.option(
    "--continue-on-integration-error",
    is_flag=True,
    help="Record a page whose replay onto trunk conflicts as failed and keep going.",
)
@click.option("--no-progress", is_flag=True, help="Hide progress bars.")
@click.option("--log-level", default=None, help="Console log level (default from WIKI2GIT_LOG_LEVEL).")
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Also write rotating debug logs to this directory.",
)
def migrate(
    base_url: str | None,
    dump_files: tuple[Path, ...],
    output_dir: Path,
    author_map_path: Path | None,
    page_limit: int | None,
    revision_limit: int | None,
    namespaces: tuple[int, ...],
    strict_conversion: bool,
    continue_on_integration_error: bool,
    no_progress: bool,
    log_level: str | None,
    log_dir: Path | None,
) -> None:
    """Migrate pages and their revisions into OUTPUT.

    Re-running against the same output repository only fetches revisions
    newer than the ones already committed.
    """
    if bool(base_url) == bool(dump_files):
        raise click.UsageError("Give exactly one wiki source: --url or --dump.")

    settings = load_settings()
    configure_logging(log_level or settings.log_level, log_dir)

    try:
        summary = run_migration(
            base_url=base_url,
            dump_files=dump_files,
            output_dir=output_dir,
            author_map_path=author_map_path,
            page_limit=page_limit,
            revision_limit=revision_limit,
            namespaces=namespaces,
            strict_conversion=strict_conversion,
            continue_on_integration_error=continue_on_integration_error,
            settings=settings,
            show_progress=not no_progress,
        )
    except Wiki2GitError as e:
        logger.error("Migration aborted: {}", e)
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1) from e

    click.echo(
        f"Migrated {summary.pages_total} pages: "
        f"{summary.commits_created} commits from {summary.revisions_fetched} revisions "
        f"({summary.revisions_skipped} skipped), "
        f"{summary.pages_integrated} integrated, {summary.pages_failed} failed."
    )


if __name__ == "__main__":
    cli()
