"""Infrastructure adapters for the history migration."""

from wiki2git.migration.infrastructure.author_map import AuthorMap
from wiki2git.migration.infrastructure.git_store import GitHistoryStore
from wiki2git.migration.infrastructure.integrator import BranchIntegrator
from wiki2git.migration.infrastructure.mw_client import MediaWikiClient
from wiki2git.migration.infrastructure.pandoc import PandocConverter
from wiki2git.migration.infrastructure.xml_dump import XmlDumpSource

__all__ = [
    "AuthorMap",
    "BranchIntegrator",
    "GitHistoryStore",
    "MediaWikiClient",
    "PandocConverter",
    "XmlDumpSource",
]
