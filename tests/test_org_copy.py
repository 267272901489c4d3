from __future__ import annotations

from pathlib import Path

import pytest

from core.domain.models import IssueRecord, PullRequestRecord
from core.errors import GitHubAPIError, ToolError, UsageError
from core.services.org_copy import (
    CopyRequest,
    DestinationIssueIndex,
    OrgCopier,
    issue_copy_body,
    pr_archive_body,
    pr_archive_title,
)


class FakeGitHub:
    """In-memory stand-in for `GitHubClient` keyed by request path."""

    def __init__(self, lists=None, existing=(), discussions=None, broken=()) -> None:
        self.lists = dict(lists or {})
        # Paths whose listing or update answers with a server error.
        self.broken = set(broken)
        self.existing = set(existing)
        self.discussions = discussions
        self.posts: list[tuple[str, dict]] = []
        self.patches: list[tuple[str, dict]] = []
        self.mutations: list[dict] = []
        self._next_issue = 100

    def paginate(self, path, *, params=None):
        if path in self.broken:
            raise GitHubAPIError(f"GET {path} -> 500", status_code=500)
        return iter(self.lists.get(path, []))

    def exists(self, path):
        return path in self.existing

    def post(self, path, payload=None):
        self.posts.append((path, payload))
        if path.endswith("/issues"):
            self._next_issue += 1
            return {"number": self._next_issue}
        if path.endswith("/milestones"):
            return {"number": 7}
        return {}

    def patch(self, path, payload=None):
        if path in self.broken:
            raise GitHubAPIError(f"PATCH {path} -> 502", status_code=502)
        self.patches.append((path, payload))
        return {}

    def graphql(self, query, variables=None, *, mutation=False):
        if "createDiscussion" in query:
            self.mutations.append(variables)
            return {"createDiscussion": {"discussion": {"id": "D1", "number": 1}}}
        if "addDiscussionComment" in query:
            self.mutations.append(variables)
            return {}
        if self.discussions is None:
            raise GitHubAPIError("GraphQL error: discussions disabled")
        return self.discussions

    def posted_to(self, path: str) -> list[dict]:
        return [payload for posted, payload in self.posts if posted == path]


class FakeMirror:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.mirrored: list[tuple[str, str]] = []

    def mirror_repo(self, source, destination):
        if self.fail:
            raise ToolError("push rejected", returncode=1)
        self.mirrored.append((source, destination))

    def wiki_exists(self, source):
        return False

    def mirror_wiki(self, source, destination):
        return True


def _issue(number, title, created_at, **extra):
    return {
        "number": number,
        "title": title,
        "created_at": created_at,
        "html_url": f"https://github.com/src/app/issues/{number}",
        "user": {"login": "alice"},
        "state": "open",
        "labels": [],
        "body": "details",
        **extra,
    }


def _copier(client, reporter, mirror=None) -> OrgCopier:
    request = CopyRequest(source_org="src", dest_org="dst", workdir=Path("/tmp/org-copy"))
    return OrgCopier(client=client, mirror=mirror or FakeMirror(), reporter=reporter, request=request)


def test_request_requires_both_orgs():
    with pytest.raises(UsageError):
        CopyRequest(source_org="src", dest_org="", workdir=Path("/tmp"))


def test_copy_bodies_carry_provenance():
    issue = IssueRecord.from_api(_issue(4, "Crash", "2024-01-02T10:00:00Z"))
    pr = PullRequestRecord.from_api(
        {
            "number": 3,
            "title": "Feature",
            "html_url": "https://github.com/src/app/pull/3",
            "user": {"login": "bob"},
            "state": "closed",
            "merged_at": "2024-02-01T00:00:00Z",
            "created_at": "2024-01-30T08:00:00Z",
            "base": {"ref": "main"},
            "head": {"ref": "feature"},
        }
    )

    assert issue_copy_body(issue).startswith(
        "(Copied from https://github.com/src/app/issues/4\n"
        "Original author: @alice • Opened: 2024-01-02T10:00:00Z)\n\n"
    )
    assert pr_archive_title(pr) == "[PR #3] Feature"
    body = pr_archive_body(pr)
    assert "- Base: `main`" in body and "- Head: `feature`" in body
    assert "- Opened: 2024-01-30T08:00:00Z" in body


def test_duplicate_issue_is_skipped_and_receives_no_comments(reporter):
    already_copied = _issue(
        9,
        "Bug",
        "2024-06-01T12:00:00Z",
        body="(Copied from x\nOriginal author: @alice • Opened: 2024-01-02T10:00:00Z)\n\ndetails",
    )
    client = FakeGitHub(
        lists={
            "/repos/src/app/issues": [
                _issue(1, "Bug", "2024-01-02T10:00:00Z"),
                _issue(2, "Bug", "2024-03-05T10:00:00Z"),
            ],
            "/repos/dst/app/issues": [already_copied],
            "/repos/src/app/issues/1/comments": [{"user": {"login": "c"}, "created_at": "t", "body": "one"}],
            "/repos/src/app/issues/2/comments": [{"user": {"login": "d"}, "created_at": "t", "body": "two"}],
        }
    )
    copier = _copier(client, reporter)

    copier.copy_issues("app", copier.destination_issue_index("app"))

    assert copier.stats.issues_skipped == 1
    assert copier.stats.issues_copied == 1
    assert client.posted_to("/repos/dst/app/issues/9/comments") == []
    assert client.posted_to("/repos/dst/app/issues/101/comments") == [
        {"body": "**(Original comment by @d on t)**\n\ntwo"}
    ]
    assert copier.stats.issue_comments_copied == 1


def test_rerun_does_not_duplicate_issues(reporter):
    client = FakeGitHub(lists={"/repos/src/app/issues": [_issue(1, "Bug", "2024-01-02T10:00:00Z")]})
    copier = _copier(client, reporter)
    index = copier.destination_issue_index("app")

    copier.copy_issues("app", index)
    copier.copy_issues("app", index)

    assert len(client.posted_to("/repos/dst/app/issues")) == 1
    assert copier.stats.issues_skipped == 1


def test_index_matches_title_and_day_only():
    index = DestinationIssueIndex.from_issues(
        [
            IssueRecord.from_api(_issue(5, "Same", "2024-01-02T23:59:59Z")),
            IssueRecord.from_api(_issue(6, "PR", "2024-01-02T00:00:00Z", pull_request={})),
        ]
    )

    assert index.find("Same", "2024-01-02T01:00:00Z") == 5
    assert index.find("Same", "2024-01-03T01:00:00Z") is None
    assert index.find("PR", "2024-01-02T00:00:00Z") is None


def test_closed_issue_with_milestone_and_labels(reporter):
    client = FakeGitHub(
        lists={
            "/repos/src/app/issues": [
                _issue(1, "Done", "2024-01-02T10:00:00Z", state="closed", labels=[{"name": "bug"}], milestone={"title": "v1"}),
                _issue(2, "A PR", "2024-01-02T10:00:00Z", pull_request={}),
            ],
            "/repos/dst/app/milestones": [{"title": "v1", "number": 3}],
        }
    )
    copier = _copier(client, reporter)

    copier.copy_issues("app", DestinationIssueIndex())

    created = client.posted_to("/repos/dst/app/issues")
    assert len(created) == 1
    assert created[0]["labels"] == ["bug"]
    assert created[0]["milestone"] == 3
    assert ("/repos/dst/app/issues/101", {"state": "closed"}) in client.patches


def test_comment_listing_failure_skips_only_that_issue(reporter):
    client = FakeGitHub(
        lists={
            "/repos/src/app/issues": [
                _issue(1, "First", "2024-01-02T10:00:00Z"),
                _issue(2, "Second", "2024-01-03T10:00:00Z"),
                _issue(3, "Third", "2024-01-04T10:00:00Z"),
            ],
            "/repos/src/app/issues/3/comments": [{"user": {"login": "c"}, "created_at": "t", "body": "kept"}],
        },
        broken={"/repos/src/app/issues/1/comments"},
    )
    copier = _copier(client, reporter)

    copier.copy_issues("app", DestinationIssueIndex())

    assert [payload["title"] for payload in client.posted_to("/repos/dst/app/issues")] == ["First", "Second", "Third"]
    assert copier.stats.issues_copied == 3
    assert client.posted_to("/repos/dst/app/issues/103/comments") == [{"body": "**(Original comment by @c on t)**\n\nkept"}]
    assert any("Comments of issue #1 not copied" in message for message in reporter.messages("warning"))


def test_thread_listing_failure_skips_only_that_pull_request(reporter):
    base = "/repos/src/app"
    pulls = [
        {"number": number, "title": title, "state": "open", "created_at": "2024-01-30T08:00:00Z", "user": {"login": "bob"}}
        for number, title in ((3, "Broken"), (4, "Fine"))
    ]
    client = FakeGitHub(
        lists={
            f"{base}/pulls": pulls,
            f"{base}/issues/4/comments": [{"user": {"login": "a"}, "created_at": "2024-02-03T00:00:00Z", "body": "ok"}],
        },
        broken={f"{base}/pulls/3/reviews"},
    )
    copier = _copier(client, reporter)

    copier.archive_pull_requests("app", DestinationIssueIndex())

    assert [payload["title"] for payload in client.posted_to("/repos/dst/app/issues")] == ["[PR #3] Broken", "[PR #4] Fine"]
    assert copier.stats.prs_archived == 2
    assert copier.stats.pr_comments_copied == 1
    assert client.posted_to("/repos/dst/app/issues/101/comments") == []
    assert any("Comments of PR #3 not copied" in message for message in reporter.messages("warning"))


def test_failed_close_still_copies_comments(reporter):
    client = FakeGitHub(
        lists={
            "/repos/src/app/issues": [_issue(1, "Bug", "2024-01-02T10:00:00Z", state="closed")],
            "/repos/src/app/issues/1/comments": [{"user": {"login": "c"}, "created_at": "t", "body": "fixed"}],
        },
        broken={"/repos/dst/app/issues/101"},
    )
    copier = _copier(client, reporter)

    copier.copy_issues("app", DestinationIssueIndex())

    assert copier.stats.issues_copied == 1
    assert copier.stats.issue_comments_copied == 1
    assert client.posted_to("/repos/dst/app/issues/101/comments") == [{"body": "**(Original comment by @c on t)**\n\nfixed"}]
    assert any("Issue #101 created but not closed" in message for message in reporter.messages("warning"))


def test_repository_run_creates_private_repo_and_sets_default_branch(reporter):
    client = FakeGitHub(
        lists={"/orgs/src/repos": [{"name": "app", "visibility": "internal", "archived": True}]},
        discussions={"src": {"discussions": {"nodes": []}}, "dst": {"id": "R1", "discussionCategories": {"nodes": []}}},
    )
    mirror = FakeMirror()
    copier = _copier(client, reporter, mirror)

    stats = copier.run()

    assert stats.repos_processed == 1 and stats.repos_created == 1
    assert ("/orgs/dst/repos", {"name": "app", "visibility": "private"}) in client.posts
    assert ("/repos/dst/app", {"has_discussions": True}) in client.patches
    assert ("/repos/dst/app", {"default_branch": "development"}) in client.patches
    assert mirror.mirrored == [("src/app", "dst/app")]
    assert client.posted_to("/repos/dst/app/labels")[0]["name"] == "archived-pr"
    assert any("no discussion categories" in message for message in reporter.messages("warning"))
    assert any("archived" in message for message in reporter.messages("warning"))


def test_failed_mirror_keeps_going_without_default_branch(reporter):
    client = FakeGitHub(lists={"/orgs/src/repos": [{"name": "app", "visibility": "public"}]})
    copier = _copier(client, reporter, FakeMirror(fail=True))

    stats = copier.run()

    assert stats.repos_processed == 1
    assert ("/repos/dst/app", {"default_branch": "development"}) not in client.patches
    assert any("Git push --mirror failed" in message for message in reporter.messages("error"))
    # Discussions GraphQL failure is a warning, not an abort.
    assert any("GraphQL fetch failed" in message for message in reporter.messages("warning"))


def test_pull_requests_archived_with_chronological_thread(reporter):
    base = "/repos/src/app"
    client = FakeGitHub(
        lists={
            f"{base}/pulls": [
                {
                    "number": 3,
                    "title": "Feature",
                    "state": "closed",
                    "created_at": "2024-01-30T08:00:00Z",
                    "user": {"login": "bob"},
                }
            ],
            f"{base}/issues/3/comments": [{"user": {"login": "a"}, "created_at": "2024-02-03T00:00:00Z", "body": "late"}],
            f"{base}/pulls/3/comments": [
                {"user": {"login": "b"}, "created_at": "2024-02-01T00:00:00Z", "body": "nit", "path": "x.py", "line": 4}
            ],
            f"{base}/pulls/3/reviews": [
                {"user": {"login": "c"}, "submitted_at": "2024-02-02T00:00:00Z", "state": "APPROVED", "body": ""}
            ],
        }
    )
    copier = _copier(client, reporter)

    copier.archive_pull_requests("app", DestinationIssueIndex())

    created = client.posted_to("/repos/dst/app/issues")
    assert created[0]["title"] == "[PR #3] Feature"
    assert created[0]["labels"] == ["archived-pr"]
    comments = [payload["body"] for payload in client.posted_to("/repos/dst/app/issues/101/comments")]
    assert comments[0].startswith("**(review comment by @b on 2024-02-01T00:00:00Z)**")
    assert "(File: x.py, Line: 4)" in comments[0]
    assert "[Review state: APPROVED]" in comments[1]
    assert comments[2].endswith("late")
    assert copier.stats.prs_archived == 1
    assert copier.stats.pr_comments_copied == 3
    assert copier.stats.issue_comments_copied == 0


def test_discussions_copied_into_matching_category(reporter):
    client = FakeGitHub(
        discussions={
            "src": {
                "discussions": {
                    "pageInfo": {"hasNextPage": False},
                    "nodes": [
                        {
                            "title": "Hello",
                            "url": "https://github.com/src/app/discussions/1",
                            "body": "hi",
                            "category": {"name": "Q&A"},
                            "comments": {"nodes": [{"author": {"login": "z"}, "createdAt": "t", "body": "yo"}]},
                        }
                    ],
                }
            },
            "dst": {
                "id": "R1",
                "discussionCategories": {"nodes": [{"id": "C-gen", "name": "General"}, {"id": "C-qa", "name": "Q&A"}]},
            },
        }
    )
    copier = _copier(client, reporter)

    copier.copy_discussions("app")

    create, comment = client.mutations
    assert create["cid"] == "C-qa"
    assert create["body"].startswith("(Copied from https://github.com/src/app/discussions/1)")
    assert comment == {"id": "D1", "body": "**(Original comment by @z on t)**\n\nyo"}
    assert copier.stats.discussions_copied == 1
    assert copier.stats.discussion_comments_copied == 1
