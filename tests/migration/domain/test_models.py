import unittest

from wiki2git.migration.domain.models import (
    FALLBACK_AUTHOR_EMAIL,
    FALLBACK_AUTHOR_NAME,
    AuthorIdentity,
    MigrationSummary,
    PageResult,
    ReplayOutcome,
    ReplayStep,
    WikiPage,
)


def make_result(pageid: int, *, committed: int, integrated: bool = True, error: str | None = None) -> PageResult:
    return PageResult(
        page=WikiPage(pageid=pageid, title=f"Page {pageid}"),
        branch_name=f"Main%3APage%20{pageid}",
        file_path=f"Main/Page_{pageid}.md",
        created_branch=True,
        resume_point=None,
        fetched=committed + 1,
        committed=committed,
        skipped_empty=1,
        skipped_conversion=0,
        integrated=integrated,
        replay_steps=(ReplayStep(commit="abc", outcome=ReplayOutcome.APPLIED),),
        error=error,
    )


class AuthorIdentityTests(unittest.TestCase):
    def test_fallback_keeps_username_and_uses_placeholder_email(self):
        identity = AuthorIdentity.fallback("Bob")
        self.assertEqual(identity, AuthorIdentity(name="Bob", email=FALLBACK_AUTHOR_EMAIL))

    def test_fallback_for_hidden_user(self):
        self.assertEqual(AuthorIdentity.fallback("").name, FALLBACK_AUTHOR_NAME)


class MigrationSummaryTests(unittest.TestCase):
    def test_from_results_aggregates_counts(self):
        summary = MigrationSummary.from_results(
            [
                make_result(1, committed=2),
                make_result(2, committed=0, integrated=False, error="conflict"),
            ]
        )
        self.assertEqual(summary.pages_total, 2)
        self.assertEqual(summary.revisions_fetched, 4)
        self.assertEqual(summary.commits_created, 2)
        self.assertEqual(summary.revisions_skipped, 2)
        self.assertEqual(summary.pages_integrated, 1)
        self.assertEqual(summary.pages_failed, 1)

    def test_page_result_to_dict(self):
        payload = make_result(7, committed=1).to_dict()
        self.assertEqual(payload["pageid"], 7)
        self.assertEqual(payload["replay_steps"], [{"commit": "abc", "outcome": "applied", "reason": None}])
        self.assertIsNone(payload["resume_point"])
