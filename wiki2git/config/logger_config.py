import sys
from pathlib import Path

from loguru import logger

DEFAULT_LOG_DIR = Path("logs")
CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"


def configure_logging(level: str = "INFO", log_dir: str | Path | None = DEFAULT_LOG_DIR) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=CONSOLE_FORMAT)
    if log_dir is None:
        return
    log_file = Path(log_dir) / "wiki2git_{time}.log"
    logger.add(
        log_file,
        rotation="256 MB",
        retention="10 days",
        compression="zip",
        encoding="utf-8",
        level="DEBUG",
        enqueue=True,
    )


__all__ = ["configure_logging", "logger"]
