from __future__ import annotations

import pytest

from core.errors import GitHubAPIError, UsageError
from core.services.org_cleanup import (
    IssueCleaner,
    IssueCleanupRequest,
    RepoDeleter,
    RepoDeletionRequest,
    RepoFilter,
)


class FakeGitHub:
    def __init__(self, repos=(), issues=None, missing=(), fail_delete=(), graphql=None) -> None:
        self.repos = list(repos)
        self.issues = issues or {}
        self.missing = set(missing)
        self.fail_delete = set(fail_delete)
        self.graphql_handler = graphql
        self.calls: list[tuple[str, str]] = []
        self.payloads: list[tuple[str, str, object]] = []

    def paginate(self, path, *, params=None):
        self.calls.append(("GET", path))
        if path.endswith("/repos"):
            return iter(self.repos)
        return iter(self.issues.get(path, []))

    def get(self, path, params=None):
        self.calls.append(("GET", path))
        if path in self.missing:
            raise GitHubAPIError("Not Found", status_code=404)
        return {"name": path.rsplit("/", 1)[-1], "visibility": "private"}

    def delete(self, path):
        self.calls.append(("DELETE", path))
        if path in self.fail_delete:
            raise GitHubAPIError("Must have admin rights", status_code=403)

    def post(self, path, payload=None):
        self.calls.append(("POST", path))
        self.payloads.append(("POST", path, payload))
        return {}

    def patch(self, path, payload=None):
        self.calls.append(("PATCH", path))
        self.payloads.append(("PATCH", path, payload))
        return {}

    def put(self, path, payload=None):
        self.calls.append(("PUT", path))
        return {}

    def graphql(self, query, variables=None, *, mutation=False):
        self.calls.append(("GRAPHQL", "deleteIssue" if mutation else "query"))
        if self.graphql_handler is None:
            raise GitHubAPIError("GraphQL error: not permitted")
        return self.graphql_handler(query, variables)

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]


REPOS = [
    {"name": "api", "full_name": "acme/api", "visibility": "public"},
    {"name": "old", "full_name": "acme/old", "visibility": "private", "archived": True},
    {"name": "web-test", "full_name": "acme/web-test", "visibility": "internal"},
]


def test_repo_request_validation():
    with pytest.raises(UsageError):
        RepoDeletionRequest(org="")
    with pytest.raises(UsageError):
        RepoDeletionRequest(org="acme")
    with pytest.raises(UsageError):
        RepoDeletionRequest(org="acme", repos=["x"], all_repos=True)
    with pytest.raises(UsageError):
        RepoFilter(match="(")


def test_filters_skip_archived_and_apply_regexes():
    default = RepoFilter()
    assert default.accepts("acme/api", archived=False)
    assert not default.accepts("acme/old", archived=True)
    assert RepoFilter(include_archived=True).accepts("acme/old", archived=True)
    assert not RepoFilter(match="^acme/web").accepts("acme/api", archived=False)
    assert not RepoFilter(exclude="-test$").accepts("acme/web-test", archived=False)


def test_dry_run_never_deletes(reporter):
    client = FakeGitHub(repos=REPOS)
    sleeps: list[float] = []
    deleter = RepoDeleter(
        client=client,
        reporter=reporter,
        request=RepoDeletionRequest(org="acme", all_repos=True),
        sleep=sleeps.append,
    )

    stats = deleter.run()

    assert "DELETE" not in client.methods()
    assert stats.repos_processed == 2
    assert stats.repos_deleted == 0
    assert len(reporter.messages("dry_run")) == 2
    assert sleeps == []


def test_execute_deletes_and_pauses(reporter):
    client = FakeGitHub(repos=REPOS, fail_delete={"/repos/acme/web-test"})
    sleeps: list[float] = []
    deleter = RepoDeleter(
        client=client,
        reporter=reporter,
        request=RepoDeletionRequest(org="acme", all_repos=True, execute=True),
        pause=0.5,
        sleep=sleeps.append,
    )

    stats = deleter.run()

    assert ("DELETE", "/repos/acme/api") in client.calls
    assert ("DELETE", "/repos/acme/old") not in client.calls
    assert stats.repos_deleted == 1
    assert stats.repos_failed == 1
    assert sleeps == [0.5, 0.5]


def test_specific_repos_missing_counts_as_failure(reporter):
    client = FakeGitHub(missing={"/repos/acme/ghost"})
    deleter = RepoDeleter(
        client=client,
        reporter=reporter,
        request=RepoDeletionRequest(org="acme", repos=["ghost", "other/kept"], execute=True),
        sleep=lambda _: None,
    )

    stats = deleter.run()

    assert stats.repos_failed == 1
    assert stats.repos_deleted == 1
    assert ("DELETE", "/repos/other/kept") in client.calls
    assert "Repository not found or access denied" in reporter.messages("error")


def _issues():
    return {
        "/repos/acme/api/issues": [
            {"number": 1, "title": "First\n  issue", "node_id": "I_1"},
            {"number": 2, "title": "A PR", "pull_request": {}},
        ]
    }


def _cleaner(client, reporter, **request) -> IssueCleaner:
    return IssueCleaner(
        client=client,
        reporter=reporter,
        request=IssueCleanupRequest(org="acme", **request),
        sleep=lambda _: None,
    )


def test_issue_dry_run_reports_only(reporter):
    client = FakeGitHub(repos=REPOS[:1], issues=_issues())

    stats = _cleaner(client, reporter, lock=True).run()

    assert stats.issues_found == 1
    assert reporter.messages("dry_run") == ["Would close (lock=true)"]
    assert set(client.methods()) == {"GET"}
    assert "Issue #1: First issue" in reporter.messages("step")


def test_close_then_lock(reporter):
    client = FakeGitHub(repos=REPOS[:1], issues=_issues())

    stats = _cleaner(client, reporter, execute=True, lock=True).run()

    assert client.methods()[-3:] == ["POST", "PATCH", "PUT"]
    assert ("PATCH", "/repos/acme/api/issues/1", {"state": "closed", "state_reason": "not_planned"}) in client.payloads
    comment = [payload for method, _, payload in client.payloads if method == "POST"][0]
    assert comment["body"].startswith("Bulk cleanup ")
    assert stats.issues_closed == 1
    assert stats.issues_locked == 1


def test_really_delete_falls_back_to_close(reporter):
    client = FakeGitHub(repos=REPOS[:1], issues=_issues())

    stats = _cleaner(client, reporter, execute=True, really_delete=True).run()

    assert ("GRAPHQL", "deleteIssue") in client.calls
    assert stats.issues_deleted == 0
    assert stats.issues_closed == 1
    assert "PUT" not in client.methods()


def test_really_delete_uses_graphql(reporter):
    client = FakeGitHub(repos=REPOS[:1], issues=_issues(), graphql=lambda query, variables: {})

    stats = _cleaner(client, reporter, execute=True, really_delete=True).run()

    assert stats.issues_deleted == 1
    assert stats.issues_closed == 0
    assert "POST" not in client.methods()
