from git import GitCommandError, Repo

from wiki2git.config.logger_config import logger
from wiki2git.migration.domain.errors import IntegrationError
from wiki2git.migration.domain.models import Committer, ReplayOutcome, ReplayStep
from wiki2git.migration.infrastructure.git_store import TRUNK_BRANCH

_EMPTY_PICK_MARKERS = ("is now empty", "nothing to commit")


class BranchIntegrator:
    """Rebase a page branch onto trunk and fast-forward trunk to the result.

    Commits pending on the page branch are replayed onto the trunk tip. On
    success both trunk and the page branch point at the replay result, so a
    later run only has the page's new commits pending.
    """

    def __init__(self, repo: Repo, committer: Committer) -> None:
        self.repo = repo
        self.committer = committer
        self._env = {
            "GIT_COMMITTER_NAME": committer.name,
            "GIT_COMMITTER_EMAIL": committer.email,
        }

    def integrate(
        self,
        page_branch: str,
        trunk_branch: str = TRUNK_BRANCH,
        title: str | None = None,
    ) -> list[ReplayStep]:
        logger.debug("Integrating '{}' into '{}'", page_branch, trunk_branch)
        self.repo.git.checkout("--force", page_branch, "--")
        self.repo.git.clean("-f", "-d", "-x")

        pending = self._pending_commits(trunk_branch, page_branch)
        if not pending:
            self.repo.git.checkout("--force", trunk_branch, "--")
            return []

        self.repo.git.checkout("--detach", trunk_branch)
        steps: list[ReplayStep] = []
        for sha in pending:
            step = self._replay(sha)
            if step.outcome is ReplayOutcome.CONFLICT:
                self._restore(page_branch)
                raise IntegrationError(page_branch, step.reason or "replay failed", title=title)
            steps.append(step)

        self.repo.git.branch("--force", page_branch, "HEAD")
        self.repo.git.branch("--force", trunk_branch, "HEAD")
        self.repo.git.checkout("--force", trunk_branch, "--")
        applied = sum(1 for s in steps if s.outcome is ReplayOutcome.APPLIED)
        logger.info(
            "Integrated '{}': {} applied, {} already present",
            page_branch,
            applied,
            len(steps) - applied,
        )
        return steps

    def _replay(self, sha: str) -> ReplayStep:
        try:
            self.repo.git.cherry_pick(sha, env=self._env)
        except GitCommandError as exc:
            details = f"{exc.stdout or ''}\n{exc.stderr or ''}"
            if any(marker in details for marker in _EMPTY_PICK_MARKERS):
                self.repo.git.cherry_pick("--skip")
                logger.trace("Commit {} is empty against trunk, skipped", sha)
                return ReplayStep(commit=sha, outcome=ReplayOutcome.ALREADY_APPLIED)
            reason = (exc.stderr or str(exc)).strip()
            logger.warning("Replay of {} failed: {}", sha, reason)
            return ReplayStep(commit=sha, outcome=ReplayOutcome.CONFLICT, reason=reason)
        return ReplayStep(commit=sha, outcome=ReplayOutcome.APPLIED)

    def _restore(self, page_branch: str) -> None:
        try:
            self.repo.git.cherry_pick("--abort")
        except GitCommandError as exc:
            logger.debug("No cherry-pick to abort: {}", exc)
        self.repo.git.reset("--hard")
        self.repo.git.checkout("--force", page_branch, "--")
        self.repo.git.clean("-f", "-d", "-x")

    def _pending_commits(self, trunk_branch: str, page_branch: str) -> list[str]:
        output = self.repo.git.rev_list("--reverse", f"{trunk_branch}..{page_branch}")
        return output.split()
