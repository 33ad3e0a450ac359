import asyncio

from wiki2git.config.logger_config import logger
from wiki2git.migration.domain.errors import ConversionError


class PandocConverter:
    """Convert wikitext to Markdown with an external pandoc process."""

    def __init__(
        self,
        pandoc_path: str = "pandoc",
        source_format: str = "mediawiki",
        target_format: str = "markdown",
    ) -> None:
        self.pandoc_path = pandoc_path
        self.source_format = source_format
        self.target_format = target_format

    async def convert(self, raw_markup: str) -> bytes:
        try:
            process = await asyncio.create_subprocess_exec(
                self.pandoc_path,
                "-f",
                self.source_format,
                "-t",
                self.target_format,
                "-",
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ConversionError(f"Cannot start {self.pandoc_path}: {exc}") from exc

        stdout, stderr = await process.communicate(raw_markup.encode("utf-8"))
        if process.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            raise ConversionError(f"{self.pandoc_path} exited with status {process.returncode}: {message}")
        if stderr:
            logger.debug("pandoc: {}", stderr.decode("utf-8", errors="replace").strip())
        return stdout
