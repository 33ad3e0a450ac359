from datetime import datetime, timezone
from pathlib import Path

from git import Actor, GitCommandError, Head, Repo
from git.exc import InvalidGitRepositoryError, NoSuchPathError
from git.objects import Commit

from wiki2git.config.logger_config import logger
from wiki2git.migration.domain.errors import RepositoryOpenError
from wiki2git.migration.domain.models import AuthorIdentity, BranchState, Committer

TRUNK_BRANCH = "master"
BASE_BRANCH = "base"
INITIAL_COMMIT_MESSAGE = "Initial commit"


def _git_date(value: datetime) -> str:
    # git's internal "<epoch> <offset>" form, always recorded in UTC.
    return f"{int(value.timestamp())} +0000"


class GitHistoryStore:
    """Owns the output repository: page branches and one commit per revision.

    The working tree is shared by every page, so each operation leaves it
    clean and matching the tip of the branch it touched.
    """

    def __init__(self, repo: Repo, committer: Committer) -> None:
        self.repo = repo
        self.committer = committer
        self._committer_actor = Actor(committer.name, committer.email)

    @property
    def working_tree(self) -> Path:
        return Path(self.repo.working_tree_dir)

    @classmethod
    def create_repository(cls, path: str | Path, committer: Committer) -> "GitHistoryStore":
        repo_path = Path(path)
        if repo_path.exists():
            try:
                repo = Repo(repo_path)
            except (InvalidGitRepositoryError, NoSuchPathError) as exc:
                raise RepositoryOpenError(f"Cannot open repository at {repo_path}: {exc}") from exc
            logger.info("Opened existing repository at {}", repo_path)
            return cls(repo, committer)

        logger.info("Creating repository at {}", repo_path)
        repo = Repo.init(repo_path, mkdir=True)
        repo.git.symbolic_ref("HEAD", f"refs/heads/{TRUNK_BRANCH}")
        actor = Actor(committer.name, committer.email)
        initial = repo.index.commit(
            INITIAL_COMMIT_MESSAGE,
            parent_commits=[],
            author=actor,
            committer=actor,
        )
        repo.create_head(BASE_BRANCH, initial)
        return cls(repo, committer)

    def branch_exists(self, branch_name: str) -> bool:
        return self._head(branch_name).is_valid()

    def ensure_page_branch(self, branch_name: str, file_path: str | None = None) -> BranchState:
        """Create ``branch_name`` from ``base`` or report where it left off.

        An integrated page branch also carries the trunk history it was
        rebased onto, so with ``file_path`` the resume point is the author
        time of the last commit touching that file rather than of the tip.
        """
        if not self.branch_exists(branch_name):
            logger.debug("Creating branch '{}'", branch_name)
            self.repo.create_head(branch_name, self._head(BASE_BRANCH).commit)
            return BranchState(created=True)

        if file_path is None:
            last = self._head(branch_name).commit
            if last == self._head(BASE_BRANCH).commit:
                return BranchState(created=False)
        else:
            last = next(self.repo.iter_commits(branch_name, paths=file_path, max_count=1), None)
            if last is None:
                return BranchState(created=False)
        resume_point = datetime.fromtimestamp(last.authored_date, tz=timezone.utc)
        logger.debug("Branch '{}' exists, resuming after {}", branch_name, resume_point.isoformat())
        return BranchState(created=False, resume_point=resume_point)

    def commit_revision(
        self,
        branch_name: str,
        file_path: str,
        content: bytes,
        author: AuthorIdentity,
        authored_at: datetime,
        message: str,
    ) -> str | None:
        """Commit ``content`` at ``file_path`` on top of ``branch_name``.

        Returns the new commit sha, or None when the content matches the
        branch tip and there is nothing to commit.
        """
        self.checkout(branch_name)
        tip = self._head(branch_name).commit
        target = self.working_tree / file_path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
            self.repo.index.add([file_path])
            tree = self.repo.index.write_tree()
            if tree.hexsha == tip.tree.hexsha:
                logger.debug("No changes to commit for '{}' on '{}'", file_path, branch_name)
                return None

            commit = self.repo.index.commit(
                message,
                parent_commits=[tip],
                author=Actor(author.name, author.email),
                committer=self._committer_actor,
                author_date=_git_date(authored_at),
            )
            logger.trace("Committed {} on '{}'", commit.hexsha, branch_name)
            return commit.hexsha
        finally:
            self.clean_working_tree()

    def checkout(self, branch_name: str) -> None:
        head = self.repo.head
        if not head.is_detached and head.is_valid() and self.repo.active_branch.name == branch_name:
            return
        logger.trace("Switching to branch '{}'", branch_name)
        self.repo.git.checkout("--force", branch_name, "--")

    def clean_working_tree(self) -> None:
        try:
            self.repo.git.reset("--hard", "HEAD")
            self.repo.git.clean("-f", "-d", "-x")
        except GitCommandError as exc:
            logger.error("Failed to clean working tree of {}: {}", self.working_tree, exc)
            raise

    def list_commits(self, branch_name: str) -> list[Commit]:
        return list(self.repo.iter_commits(branch_name, reverse=True))

    def read_file(self, branch_name: str, file_path: str) -> bytes:
        blob = self._head(branch_name).commit.tree / file_path
        return blob.data_stream.read()

    def close(self) -> None:
        self.repo.close()

    def _head(self, branch_name: str) -> Head:
        return Head(self.repo, f"refs/heads/{branch_name}")
