import unittest
from datetime import datetime, timedelta, timezone

from git import Repo

from wiki2git.migration.domain.errors import IntegrationError
from wiki2git.migration.domain.models import AuthorIdentity, Committer, ReplayOutcome
from wiki2git.migration.infrastructure.git_store import BASE_BRANCH, TRUNK_BRANCH, GitHistoryStore
from wiki2git.migration.infrastructure.integrator import BranchIntegrator
from tests.utils.tempdir import managed_temp_dir

COMMITTER = Committer(name="wiki2git", email="wiki2git@localhost")
ALICE = AuthorIdentity(name="Alice", email="alice@example.com")
START = datetime(2020, 1, 1, tzinfo=timezone.utc)


def commit_contents(store: GitHistoryStore, branch: str, path: str, contents: list[bytes], offset: int = 0) -> None:
    store.ensure_page_branch(branch)
    for i, content in enumerate(contents, start=offset):
        store.commit_revision(branch, path, content, ALICE, START + timedelta(hours=i), f"{branch} rev {i}")


def messages_since_base(store: GitHistoryStore, branch: str) -> list[str]:
    # cherry-pick normalizes messages with a trailing newline
    return [c.message.strip() for c in store.repo.iter_commits(f"{BASE_BRANCH}..{branch}", reverse=True)]


class BranchIntegratorTests(unittest.TestCase):
    def test_integrate_replays_page_commits_onto_trunk(self):
        with managed_temp_dir("integrate_basic") as tmp:
            store = GitHistoryStore.create_repository(tmp / "repo", COMMITTER)
            try:
                commit_contents(store, "Main%3AA", "Main/A.md", [b"one", b"two"])

                steps = BranchIntegrator(store.repo, COMMITTER).integrate("Main%3AA")

                self.assertEqual([s.outcome for s in steps], [ReplayOutcome.APPLIED, ReplayOutcome.APPLIED])
                self.assertEqual(messages_since_base(store, TRUNK_BRANCH), ["Main%3AA rev 0", "Main%3AA rev 1"])
                self.assertEqual(store.read_file(TRUNK_BRANCH, "Main/A.md"), b"two")
                self.assertEqual(store.repo.heads["Main%3AA"].commit, store.repo.heads[TRUNK_BRANCH].commit)
                self.assertEqual(store.repo.active_branch.name, TRUNK_BRANCH)

                replayed = store.repo.heads[TRUNK_BRANCH].commit
                self.assertEqual(replayed.author.email, "alice@example.com")
                self.assertEqual(replayed.authored_date, int((START + timedelta(hours=1)).timestamp()))
                self.assertEqual(replayed.committer.name, "wiki2git")
            finally:
                store.close()

    def test_reintegration_without_new_commits_changes_nothing(self):
        with managed_temp_dir("integrate_idempotent") as tmp:
            store = GitHistoryStore.create_repository(tmp / "repo", COMMITTER)
            try:
                commit_contents(store, "Main%3AB", "Main/B.md", [b"b"])
                commit_contents(store, "Main%3AA", "Main/A.md", [b"one", b"two"], offset=1)
                integrator = BranchIntegrator(store.repo, COMMITTER)
                integrator.integrate("Main%3AB")
                integrator.integrate("Main%3AA")
                trunk_before = store.repo.heads[TRUNK_BRANCH].commit.hexsha

                self.assertEqual(integrator.integrate("Main%3AA"), [])
                self.assertEqual(integrator.integrate("Main%3AB"), [])

                self.assertEqual(store.repo.heads[TRUNK_BRANCH].commit.hexsha, trunk_before)
                self.assertEqual(
                    messages_since_base(store, TRUNK_BRANCH),
                    ["Main%3AB rev 0", "Main%3AA rev 1", "Main%3AA rev 2"],
                )
            finally:
                store.close()

    def test_new_commits_after_fold_are_appended(self):
        with managed_temp_dir("integrate_resume") as tmp:
            store = GitHistoryStore.create_repository(tmp / "repo", COMMITTER)
            try:
                commit_contents(store, "Main%3AB", "Main/B.md", [b"b"])
                commit_contents(store, "Main%3AA", "Main/A.md", [b"one"], offset=1)
                integrator = BranchIntegrator(store.repo, COMMITTER)
                integrator.integrate("Main%3AB")
                integrator.integrate("Main%3AA")
                store.commit_revision("Main%3AA", "Main/A.md", b"one two", ALICE, START + timedelta(days=1), "later")

                steps = integrator.integrate("Main%3AA")

                self.assertEqual([s.outcome for s in steps], [ReplayOutcome.APPLIED])
                self.assertEqual(
                    messages_since_base(store, TRUNK_BRANCH),
                    ["Main%3AB rev 0", "Main%3AA rev 1", "later"],
                )
                self.assertEqual(store.read_file(TRUNK_BRANCH, "Main/A.md"), b"one two")
            finally:
                store.close()

    def test_repeated_reverted_edit_is_replayed_again(self):
        with managed_temp_dir("integrate_revert") as tmp:
            store = GitHistoryStore.create_repository(tmp / "repo", COMMITTER)
            try:
                integrator = BranchIntegrator(store.repo, COMMITTER)
                commit_contents(store, "Main%3AB", "Main/B.md", [b"b"])
                integrator.integrate("Main%3AB")
                commit_contents(store, "Main%3AA", "Main/A.md", [b"Good", b"Vandal", b"Good"], offset=1)
                first = integrator.integrate("Main%3AA")

                store.commit_revision("Main%3AA", "Main/A.md", b"Vandal", ALICE, START + timedelta(days=1), "r4")
                second = integrator.integrate("Main%3AA")
                self.assertEqual(store.read_file(TRUNK_BRANCH, "Main/A.md"), b"Vandal")

                store.commit_revision("Main%3AA", "Main/A.md", b"Other", ALICE, START + timedelta(days=2), "r5")
                third = integrator.integrate("Main%3AA")

                self.assertEqual([s.outcome for s in first], [ReplayOutcome.APPLIED] * 3)
                self.assertEqual([s.outcome for s in second], [ReplayOutcome.APPLIED])
                self.assertEqual([s.outcome for s in third], [ReplayOutcome.APPLIED])
                self.assertEqual(store.read_file(TRUNK_BRANCH, "Main/A.md"), b"Other")
                self.assertEqual(store.read_file("Main%3AA", "Main/A.md"), b"Other")
                self.assertEqual(store.read_file(TRUNK_BRANCH, "Main/B.md"), b"b")
            finally:
                store.close()

    def test_trunk_grows_page_by_page_in_processing_order(self):
        with managed_temp_dir("integrate_order") as tmp:
            store = GitHistoryStore.create_repository(tmp / "repo", COMMITTER)
            try:
                integrator = BranchIntegrator(store.repo, COMMITTER)
                commit_contents(store, "Main%3AA", "Main/A.md", [b"a1", b"a2"])
                commit_contents(store, "Main%3AB", "Main/B.md", [b"b1"])

                integrator.integrate("Main%3AB")
                after_b = messages_since_base(store, TRUNK_BRANCH)
                integrator.integrate("Main%3AA")

                self.assertEqual(after_b, ["Main%3AB rev 0"])
                self.assertEqual(
                    messages_since_base(store, TRUNK_BRANCH),
                    ["Main%3AB rev 0", "Main%3AA rev 0", "Main%3AA rev 1"],
                )
                self.assertEqual(store.read_file(TRUNK_BRANCH, "Main/B.md"), b"b1")
                self.assertEqual(store.read_file(TRUNK_BRANCH, "Main/A.md"), b"a2")
            finally:
                store.close()

    def test_conflict_aborts_and_leaves_trunk_unchanged(self):
        with managed_temp_dir("integrate_conflict") as tmp:
            store = GitHistoryStore.create_repository(tmp / "repo", COMMITTER)
            try:
                integrator = BranchIntegrator(store.repo, COMMITTER)
                commit_contents(store, "Main%3AA", "Main/Shared.md", [b"from A"])
                integrator.integrate("Main%3AA")
                trunk_before = store.repo.heads[TRUNK_BRANCH].commit.hexsha
                commit_contents(store, "Main%3AB", "Main/Shared.md", [b"from B"])
                page_before = store.repo.heads["Main%3AB"].commit.hexsha

                with self.assertRaises(IntegrationError) as ctx:
                    integrator.integrate("Main%3AB", title="B")

                self.assertEqual(ctx.exception.branch_name, "Main%3AB")
                self.assertIn("page 'B'", str(ctx.exception))
                self.assertEqual(store.repo.heads[TRUNK_BRANCH].commit.hexsha, trunk_before)
                self.assertEqual(store.repo.heads["Main%3AB"].commit.hexsha, page_before)
                self.assertEqual(store.repo.active_branch.name, "Main%3AB")
                self.assertFalse(store.repo.is_dirty(untracked_files=True))
                self.assertFalse((tmp / "repo" / ".git" / "CHERRY_PICK_HEAD").exists())
            finally:
                store.close()

    def test_identical_change_from_another_branch_is_already_applied(self):
        with managed_temp_dir("integrate_same_patch") as tmp:
            store = GitHistoryStore.create_repository(tmp / "repo", COMMITTER)
            try:
                integrator = BranchIntegrator(store.repo, COMMITTER)
                commit_contents(store, "Main%3AA", "Main/Same.md", [b"same"])
                integrator.integrate("Main%3AA")
                commit_contents(store, "Main%3AA2", "Main/Same.md", [b"same"])

                steps = integrator.integrate("Main%3AA2")

                self.assertEqual([s.outcome for s in steps], [ReplayOutcome.ALREADY_APPLIED])
                self.assertEqual(len(messages_since_base(store, TRUNK_BRANCH)), 1)
            finally:
                store.close()

    def test_branch_without_commits_is_a_no_op(self):
        with managed_temp_dir("integrate_empty") as tmp:
            store = GitHistoryStore.create_repository(tmp / "repo", COMMITTER)
            try:
                store.ensure_page_branch("Main%3AEmpty")
                trunk_before = store.repo.heads[TRUNK_BRANCH].commit.hexsha

                self.assertEqual(BranchIntegrator(store.repo, COMMITTER).integrate("Main%3AEmpty"), [])
                self.assertEqual(store.repo.heads[TRUNK_BRANCH].commit.hexsha, trunk_before)
            finally:
                store.close()

    def test_committer_comes_from_integrator_not_repository_state(self):
        with managed_temp_dir("integrate_committer") as tmp:
            store = GitHistoryStore.create_repository(tmp / "repo", COMMITTER)
            try:
                commit_contents(store, "Main%3AB", "Main/B.md", [b"b"])
                commit_contents(store, "Main%3AA", "Main/A.md", [b"a"], offset=1)
            finally:
                store.close()

            repo = Repo(tmp / "repo")
            try:
                integrator = BranchIntegrator(repo, Committer(name="Replay Bot", email="replay@example.com"))
                integrator.integrate("Main%3AB")
                integrator.integrate("Main%3AA")

                replayed = repo.heads[TRUNK_BRANCH].commit
                self.assertEqual(replayed.message.strip(), "Main%3AA rev 1")
                self.assertEqual(replayed.committer.name, "Replay Bot")
                self.assertEqual(replayed.committer.email, "replay@example.com")
                self.assertEqual(replayed.author.name, "Alice")
            finally:
                repo.close()
