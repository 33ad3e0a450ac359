import asyncio
import json
from datetime import datetime
from typing import Any

import aiohttp
from aiohttp import (
    ClientConnectorError,
    ClientPayloadError,
    ClientResponseError,
    ServerDisconnectedError,
)

from wiki2git.config.logger_config import logger
from wiki2git.config.settings import DEFAULT_USER_AGENT
from wiki2git.migration.domain.errors import WikiFetchError
from wiki2git.migration.domain.models import Revision, WikiPage
from wiki2git.migration.domain.rules import (
    build_api_url,
    format_wiki_timestamp,
    next_second,
    parse_wiki_timestamp,
)

ContinuationToken = dict[str, Any]


class MediaWikiClient:
    """Paginated page and revision listings from a live wiki's action API."""

    def __init__(
        self,
        base_url: str,
        user_agent: str = DEFAULT_USER_AGENT,
        retries: int = 3,
    ) -> None:
        self.base_url = build_api_url(base_url)
        self.user_agent = user_agent
        self.retries = retries

    async def fetch_page_batch(
        self,
        session: aiohttp.ClientSession,
        continuation: ContinuationToken | None,
        namespace: int,
        limit: int = 50,
    ) -> tuple[list[WikiPage], ContinuationToken | None]:
        params: dict[str, Any] = {
            "action": "query",
            "format": "json",
            "formatversion": "2",
            "list": "allpages",
            "apnamespace": str(namespace),
            "aplimit": str(limit),
        }
        data = await self._fetch(
            session,
            {**params, **(continuation or {})},
            operation="fetch_page_batch",
        )
        pages = [
            WikiPage(
                pageid=int(item["pageid"]),
                title=str(item["title"]),
                namespace=int(item.get("ns", namespace)),
            )
            for item in data.get("query", {}).get("allpages", [])
            if item.get("pageid") is not None and item.get("title")
        ]
        logger.debug("Fetched {} pages in namespace {}", len(pages), namespace)
        return pages, data.get("continue")

    async def fetch_revision_batch(
        self,
        session: aiohttp.ClientSession,
        pageid: int,
        continuation: ContinuationToken | None,
        after_timestamp: datetime | None,
        limit: int = 50,
    ) -> tuple[list[Revision], ContinuationToken | None]:
        params: dict[str, Any] = {
            "action": "query",
            "format": "json",
            "formatversion": "2",
            "prop": "revisions",
            "pageids": str(pageid),
            "rvprop": "ids|timestamp|user|comment|content",
            "rvslots": "main",
            "rvlimit": str(limit),
            "rvdir": "newer",
        }
        if after_timestamp is not None:
            # rvstart is inclusive, the resume point itself is already committed.
            params["rvstart"] = format_wiki_timestamp(next_second(after_timestamp))
        data = await self._fetch(
            session,
            {**params, **(continuation or {})},
            operation="fetch_revision_batch",
            pageid=pageid,
        )

        pages = data.get("query", {}).get("pages", [])
        if not pages or pages[0].get("missing"):
            logger.warning("Pageid '{}' not found.", pageid)
            return [], None

        revisions: list[Revision] = []
        for item in pages[0].get("revisions", []):
            revid = item.get("revid")
            timestamp = item.get("timestamp")
            if revid is None or not timestamp:
                logger.warning("Incomplete revision payload for pageid '{}': {}", pageid, item)
                continue
            revision = Revision(
                revid=int(revid),
                timestamp=parse_wiki_timestamp(timestamp),
                user=str(item.get("user") or ""),
                comment=str(item.get("comment") or ""),
                content=self._extract_revision_content(item),
            )
            if after_timestamp is not None and revision.timestamp <= after_timestamp:
                continue
            revisions.append(revision)
        return revisions, data.get("continue")

    async def _fetch(
        self,
        session: aiohttp.ClientSession,
        params: dict[str, Any],
        *,
        operation: str,
        pageid: int | None = None,
    ) -> dict[str, Any]:
        timeout = aiohttp.ClientTimeout(total=45, connect=10)
        headers = {"User-Agent": self.user_agent}
        target = f"{operation} (pageid {pageid})" if pageid is not None else operation
        for attempt in range(1, self.retries + 1):
            try:
                async with session.get(self.base_url, params=params, headers=headers, timeout=timeout) as resp:
                    if resp.status >= 500 or resp.status == 429:
                        logger.warning(
                            "Server error {}. Attempt {}/{}",
                            resp.status,
                            attempt,
                            self.retries,
                        )
                        raise ClientResponseError(
                            resp.request_info,
                            resp.history,
                            status=resp.status,
                            message="Server Error",
                        )

                    if resp.status != 200:
                        body = await resp.text()
                        raise WikiFetchError(
                            f"HTTP {resp.status} from {self.base_url} during {target}: {body[:200]}"
                        )

                    data = await resp.json()
            except (
                ClientResponseError,
                ClientConnectorError,
                ServerDisconnectedError,
                asyncio.TimeoutError,
                ClientPayloadError,
                json.JSONDecodeError,
            ) as exc:
                if attempt == self.retries:
                    raise WikiFetchError(
                        f"Failed {target} against {self.base_url} after {self.retries} attempts: {exc}"
                    ) from exc
                wait_time = 2**attempt
                logger.warning("Connection unstable ({}). Retrying in {}s...", exc, wait_time)
                await asyncio.sleep(wait_time)
                continue

            if not isinstance(data, dict):
                raise WikiFetchError(f"Unexpected payload from {self.base_url} during {target}")
            if "error" in data:
                raise WikiFetchError(f"API error from {self.base_url} during {target}: {data['error']}")
            return data

        raise WikiFetchError(f"No attempt made for {target} against {self.base_url}")

    @staticmethod
    def _extract_revision_content(revision: dict[str, Any]) -> str:
        content = revision.get("content")
        if isinstance(content, str):
            return content

        slots = revision.get("slots")
        if not isinstance(slots, dict):
            return ""
        main_slot = slots.get("main")
        if not isinstance(main_slot, dict):
            return ""

        slot_content = main_slot.get("content")
        if isinstance(slot_content, str):
            return slot_content

        legacy_content = main_slot.get("*")
        if isinstance(legacy_content, str):
            return legacy_content

        return ""
