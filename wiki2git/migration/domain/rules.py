from datetime import datetime, timedelta, timezone
from urllib.parse import quote

from wiki2git.migration.domain.models import Revision

MAIN_NAMESPACE = 0
FILE_NAMESPACE = 6
MAIN_DIRECTORY = "Main"
MARKDOWN_EXTENSION = ".md"
EMPTY_COMMENT_MESSAGE = "(no edit summary)"
WIKI_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def _percent_encode(value: str) -> str:
    # Only the unreserved set A-Z a-z 0-9 - _ . ~ survives.
    return quote(value, safe="")


def _force_extension(path: str, extension: str) -> str:
    directory, sep, name = path.rpartition("/")
    dot = name.rfind(".")
    if dot > 0:
        name = name[:dot]
    return f"{directory}{sep}{name}{extension}"


def encode_title(title: str) -> str:
    escaped = title.replace("_", "__").replace(" ", "_")
    return _percent_encode(escaped)


def encode_file_path(title: str, namespace: int) -> str:
    """Map a page to its repository-relative POSIX file path.

    Main namespace pages live under ``Main/`` with a ``.md`` suffix. Other
    namespaces use their title prefix as directory (``User:Foo`` becomes
    ``User/Foo.md``); the File namespace keeps the attachment's extension.
    """
    encoded = encode_title(title)
    if namespace == MAIN_NAMESPACE:
        return f"{MAIN_DIRECTORY}/{encoded}{MARKDOWN_EXTENSION}"
    path = encoded.replace("%3A", "/", 1)
    if namespace == FILE_NAMESPACE:
        return path
    return _force_extension(path, MARKDOWN_EXTENSION)


def encode_branch_name(title: str, namespace: int) -> str:
    """Map a page to its branch name.

    Main namespace titles get a ``Main:`` prefix so they cannot clash with a
    page literally named after a namespace. Dots are escaped because ``..`` and
    trailing dots are not allowed in git ref names.
    """
    if namespace == MAIN_NAMESPACE:
        title = f"{MAIN_DIRECTORY}:{title}"
    return _percent_encode(title).replace(".", "%2E")


def parse_wiki_timestamp(value: str) -> datetime:
    return datetime.strptime(value, WIKI_TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def format_wiki_timestamp(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(WIKI_TIMESTAMP_FORMAT)


def next_second(value: datetime) -> datetime:
    return value + timedelta(seconds=1)


def build_commit_message(revision: Revision) -> str:
    comment = (revision.comment or "").strip()
    return comment or EMPTY_COMMENT_MESSAGE


def build_api_url(base_url: str) -> str:
    url = base_url.strip().rstrip("/")
    if url.endswith("api.php"):
        return url
    return f"{url}/api.php"
