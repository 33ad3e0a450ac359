import csv
from pathlib import Path

from wiki2git.config.logger_config import logger
from wiki2git.migration.domain.errors import AuthorMapError
from wiki2git.migration.domain.models import AuthorIdentity


class AuthorMap:
    """Wiki username to git identity, read from a ``username,name,email`` CSV file."""

    def __init__(self, authors: dict[str, AuthorIdentity] | None = None) -> None:
        self.authors = dict(authors or {})

    @classmethod
    def empty(cls) -> "AuthorMap":
        return cls()

    @classmethod
    def load(cls, path: str | Path) -> "AuthorMap":
        csv_path = Path(path)
        authors: dict[str, AuthorIdentity] = {}
        try:
            with csv_path.open("r", encoding="utf-8", newline="") as f:
                reader = csv.reader(f)
                next(reader, None)
                for row in reader:
                    if not row or not any(cell.strip() for cell in row):
                        continue
                    if len(row) < 3:
                        raise AuthorMapError(
                            f"{csv_path}:{reader.line_num}: expected username,name,email, got {row!r}"
                        )
                    username, name, email = (cell.strip() for cell in row[:3])
                    authors[username] = AuthorIdentity(name=name, email=email)
        except OSError as exc:
            raise AuthorMapError(f"Cannot read author map {csv_path}: {exc}") from exc
        logger.info("Loaded {} author mappings from {}", len(authors), csv_path)
        return cls(authors)

    def lookup(self, username: str) -> AuthorIdentity | None:
        return self.authors.get(username)

    def __len__(self) -> int:
        return len(self.authors)
