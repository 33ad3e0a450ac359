# Process-wide defaults, overridable through the environment or a .env file.

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

DEFAULT_USER_AGENT = "wiki2git/0.1 (history migration; https://www.mediawiki.org/wiki/API:Etiquette)"


@dataclass(frozen=True)
class Settings:
    user_agent: str = DEFAULT_USER_AGENT
    log_level: str = "INFO"
    pandoc_path: str = "pandoc"
    committer_name: str = "wiki2git"
    committer_email: str = "wiki2git@localhost"


def load_settings() -> Settings:
    defaults = Settings()
    return Settings(
        user_agent=os.getenv("WIKI2GIT_USER_AGENT", defaults.user_agent),
        log_level=os.getenv("WIKI2GIT_LOG_LEVEL", defaults.log_level),
        pandoc_path=os.getenv("WIKI2GIT_PANDOC_PATH", defaults.pandoc_path),
        committer_name=os.getenv("WIKI2GIT_COMMITTER_NAME", defaults.committer_name),
        committer_email=os.getenv("WIKI2GIT_COMMITTER_EMAIL", defaults.committer_email),
    )
