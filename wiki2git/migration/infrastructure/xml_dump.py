"""Offline wiki source backed by MediaWiki XML export files.

Dumps produced by ``Special:Export`` or ``dumpBackup.php`` carry every page
with its full revision list. They are parsed once, on first use, into an
in-memory index that serves the same paginated listings as the live API.
"""

import xml.etree.ElementTree as ET
from collections.abc import Iterable, Iterator
from datetime import datetime
from pathlib import Path
from typing import Any

from wiki2git.config.logger_config import logger
from wiki2git.migration.domain.errors import WikiFetchError
from wiki2git.migration.domain.models import Revision, WikiPage
from wiki2git.migration.domain.rules import parse_wiki_timestamp


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> str | None:
    for child in element:
        if _local_name(child.tag) == name:
            return child.text or ""
    return None


def _child(element: ET.Element, name: str) -> ET.Element | None:
    for child in element:
        if _local_name(child.tag) == name:
            return child
    return None


def _parse_revision(element: ET.Element) -> Revision:
    contributor = _child(element, "contributor")
    user = ""
    if contributor is not None:
        user = _child_text(contributor, "username") or _child_text(contributor, "ip") or ""
    revid = _child_text(element, "id")
    timestamp = _child_text(element, "timestamp")
    if not revid or not timestamp:
        raise ValueError("revision without id or timestamp")
    return Revision(
        revid=int(revid),
        timestamp=parse_wiki_timestamp(timestamp.strip()),
        user=user,
        comment=_child_text(element, "comment") or "",
        content=_child_text(element, "text") or "",
    )


def iter_dump_pages(path: Path) -> Iterator[tuple[WikiPage, list[Revision]]]:
    context = ET.iterparse(str(path), events=("end",))
    for _, element in context:
        if _local_name(element.tag) != "page":
            continue
        title = _child_text(element, "title")
        pageid = _child_text(element, "id")
        if not title or not pageid:
            raise ValueError("page without title or id")
        page = WikiPage(
            pageid=int(pageid),
            title=title,
            namespace=int(_child_text(element, "ns") or 0),
        )
        revisions = [
            _parse_revision(child)
            for child in element
            if _local_name(child.tag) == "revision"
        ]
        revisions.sort(key=lambda r: (r.timestamp, r.revid))
        yield page, revisions
        element.clear()


class XmlDumpSource:
    def __init__(self, dump_files: Iterable[str | Path]) -> None:
        self.dump_files = tuple(Path(p) for p in dump_files)
        self._pages: list[WikiPage] | None = None
        self._revisions: dict[int, list[Revision]] = {}

    async def fetch_page_batch(
        self,
        _session: Any,
        continuation: int | None,
        namespace: int,
        limit: int = 50,
    ) -> tuple[list[WikiPage], int | None]:
        pages = [p for p in self._load() if p.namespace == namespace]
        return self._slice(pages, continuation, limit)

    async def fetch_revision_batch(
        self,
        _session: Any,
        pageid: int,
        continuation: int | None,
        after_timestamp: datetime | None,
        limit: int = 50,
    ) -> tuple[list[Revision], int | None]:
        self._load()
        revisions = self._revisions.get(pageid, [])
        if after_timestamp is not None:
            revisions = [r for r in revisions if r.timestamp > after_timestamp]
        return self._slice(revisions, continuation, limit)

    @staticmethod
    def _slice(items: list, continuation: int | None, limit: int) -> tuple[list, int | None]:
        offset = continuation or 0
        end = offset + limit
        return items[offset:end], (end if end < len(items) else None)

    def _load(self) -> list[WikiPage]:
        if self._pages is not None:
            return self._pages
        pages: list[WikiPage] = []
        for path in self.dump_files:
            logger.info("Reading wiki dump {}", path)
            try:
                for page, revisions in iter_dump_pages(path):
                    if page.pageid in self._revisions:
                        # Same page split across dump files.
                        merged = {r.revid: r for r in self._revisions[page.pageid]}
                        merged.update((r.revid, r) for r in revisions)
                        self._revisions[page.pageid] = sorted(
                            merged.values(), key=lambda r: (r.timestamp, r.revid)
                        )
                        continue
                    pages.append(page)
                    self._revisions[page.pageid] = revisions
            except (ET.ParseError, ValueError, OSError) as exc:
                raise WikiFetchError(f"Cannot read wiki dump {path}: {exc}") from exc
        logger.info(
            "Loaded {} pages and {} revisions from {} dump file(s)",
            len(pages),
            sum(len(r) for r in self._revisions.values()),
            len(self.dump_files),
        )
        self._pages = pages
        return pages
