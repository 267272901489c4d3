"""Bulk deletion of repositories and issues in a GitHub organization.

Both operations default to a dry run: nothing is mutated until the caller
passes `execute=True` (the `--yes` flag).
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Sequence

from adapters.github_client import GitHubClient
from core.domain.models import CleanupStats
from core.errors import GitHubAPIError, UsageError
from core.interfaces.reporter import Reporter

logger = logging.getLogger(__name__)

ISSUE_NODE_QUERY = """
query($owner:String!, $name:String!, $number:Int!) {
  repository(owner:$owner, name:$name) { issue(number:$number) { id } }
}
"""

DELETE_ISSUE = """
mutation($issueId:ID!) { deleteIssue(input:{issueId:$issueId}) { clientMutationId } }
"""


@dataclass
class RepoFilter:
    """Archived / regex filters applied to `owner/name`."""

    include_archived: bool = False
    match: str | None = None
    exclude: str | None = None
    _match_re: re.Pattern[str] | None = field(default=None, init=False, repr=False)
    _exclude_re: re.Pattern[str] | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        try:
            self._match_re = re.compile(self.match) if self.match else None
            self._exclude_re = re.compile(self.exclude) if self.exclude else None
        except re.error as exc:
            raise UsageError(f"Invalid regex: {exc}") from exc

    def accepts(self, full_name: str, *, archived: bool) -> bool:
        if archived and not self.include_archived:
            return False
        if self._match_re and not self._match_re.search(full_name):
            return False
        if self._exclude_re and self._exclude_re.search(full_name):
            return False
        return True


def _full_name(org: str, data: dict[str, Any]) -> str:
    return data.get("full_name") or f"{org}/{data['name']}"


@dataclass
class RepoDeletionRequest:
    org: str
    repos: Sequence[str] = ()
    all_repos: bool = False
    execute: bool = False
    filters: RepoFilter = field(default_factory=RepoFilter)

    def __post_init__(self) -> None:
        if not self.org:
            raise UsageError("Organization name is required")
        if self.all_repos and self.repos:
            raise UsageError("Cannot use --all with specific repository names")
        if not self.all_repos and not self.repos:
            raise UsageError("Must specify either --all or provide repository names")


@dataclass
class IssueCleanupRequest:
    org: str
    execute: bool = False
    lock: bool = False
    only_open: bool = False
    really_delete: bool = False
    filters: RepoFilter = field(default_factory=RepoFilter)

    def __post_init__(self) -> None:
        if not self.org:
            raise UsageError("Organization name is required")


class RepoDeleter:
    def __init__(
        self,
        *,
        client: GitHubClient,
        reporter: Reporter,
        request: RepoDeletionRequest,
        pause: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.reporter = reporter
        self.request = request
        self.pause = pause
        self._sleep = sleep
        self.stats = CleanupStats()

    def run(self) -> CleanupStats:
        request = self.request
        if request.all_repos:
            self.reporter.info(f"Fetching all repositories from organization: {request.org}")
            repos = list(self.client.paginate(f"/orgs/{request.org}/repos"))
            if not repos:
                self.reporter.error("No repositories found or failed to fetch repositories")
                return self.stats
            for data in repos:
                full_name = _full_name(request.org, data)
                if request.filters.accepts(full_name, archived=bool(data.get("archived"))):
                    self._process(full_name, data)
            return self.stats

        self.reporter.info(f"Processing {len(request.repos)} specific repository(ies)")
        for name in request.repos:
            full_name = name if "/" in name else f"{request.org}/{name}"
            try:
                data = self.client.get(f"/repos/{full_name}")
            except GitHubAPIError:
                self.reporter.header(full_name)
                self.reporter.error("Repository not found or access denied")
                self.stats.repos_failed += 1
                continue
            if not request.filters.accepts(full_name, archived=bool(data.get("archived"))):
                self.reporter.header(full_name)
                self.reporter.warning("Skipped (filtered by configuration)")
                continue
            self._process(full_name, data)
        return self.stats

    def _process(self, full_name: str, data: dict[str, Any]) -> None:
        visibility = data.get("visibility") or ("private" if data.get("private") else "public")
        self.reporter.header(f"[{visibility}] {full_name}")
        self.stats.repos_processed += 1

        if not self.request.execute:
            self.reporter.dry_run("Would delete repository")
            return

        try:
            self.client.delete(f"/repos/{full_name}")
        except GitHubAPIError as exc:
            self.reporter.error(f"Failed to delete repository (check permissions): {exc.message}")
            self.stats.repos_failed += 1
        else:
            self.reporter.success("Repository deleted")
            self.stats.repos_deleted += 1
        self._sleep(self.pause)


class IssueCleaner:
    def __init__(
        self,
        *,
        client: GitHubClient,
        reporter: Reporter,
        request: IssueCleanupRequest,
        pause: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.client = client
        self.reporter = reporter
        self.request = request
        self.pause = pause
        self._sleep = sleep
        self._clock = clock
        self.stats = CleanupStats()

    def run(self) -> CleanupStats:
        request = self.request
        self.reporter.info(f"Fetching repositories from organization: {request.org}")
        repos = list(self.client.paginate(f"/orgs/{request.org}/repos"))
        if not repos:
            self.reporter.error("No repositories found or failed to fetch repositories")
            return self.stats

        for data in repos:
            full_name = _full_name(request.org, data)
            if not request.filters.accepts(full_name, archived=bool(data.get("archived"))):
                continue
            self.stats.repos_processed += 1
            visibility = data.get("visibility") or ("private" if data.get("private") else "public")
            self.reporter.header(f"[{visibility}] {full_name}")
            try:
                self.process_repository(full_name)
            except GitHubAPIError as exc:
                self.reporter.error(f"Could not list issues: {exc.message}")
        return self.stats

    def process_repository(self, full_name: str) -> None:
        state = "open" if self.request.only_open else "all"
        issues = [
            item
            for item in self.client.paginate(f"/repos/{full_name}/issues", params={"state": state})
            if "pull_request" not in item
        ]
        if not issues:
            self.reporter.info("No issues found")
            return
        self.reporter.info(f"Found {len(issues)} issue(s)")
        self.stats.issues_found += len(issues)
        for issue in issues:
            self.process_issue(full_name, issue)

    def process_issue(self, full_name: str, issue: dict[str, Any]) -> None:
        number = int(issue["number"])
        title = " ".join(str(issue.get("title") or "").split())[:100]
        self.reporter.step(f"Issue #{number}: {title}")

        lock = str(self.request.lock).lower()
        if not self.request.execute:
            if self.request.really_delete:
                self.reporter.dry_run(f"Would attempt delete via GraphQL; else close (lock={lock})")
            else:
                self.reporter.dry_run(f"Would close (lock={lock})")
            return

        if self.request.really_delete and self.attempt_delete(full_name, number, issue.get("node_id")):
            self._sleep(self.pause)
            return

        if self.close_issue(full_name, number) and self.request.lock:
            self.lock_issue(full_name, number)
        self._sleep(self.pause)

    def attempt_delete(self, full_name: str, number: int, node_id: str | None = None) -> bool:
        owner, name = full_name.split("/", 1)
        if not node_id:
            try:
                data = self.client.graphql(ISSUE_NODE_QUERY, {"owner": owner, "name": name, "number": number})
                node_id = ((data.get("repository") or {}).get("issue") or {}).get("id")
            except GitHubAPIError:
                node_id = None
        if not node_id:
            self.reporter.warning("Could not resolve node ID; will close instead")
            return False
        try:
            self.client.graphql(DELETE_ISSUE, {"issueId": node_id}, mutation=True)
        except GitHubAPIError as exc:
            logger.debug("deleteIssue failed: %s", exc.message)
            self.reporter.warning("Delete failed or not permitted; will close instead")
            return False
        self.reporter.success("Deleted via GraphQL")
        self.stats.issues_deleted += 1
        return True

    def close_issue(self, full_name: str, number: int) -> bool:
        stamp = self._clock().strftime("%Y-%m-%d %H:%M:%S")
        try:
            self.client.post(f"/repos/{full_name}/issues/{number}/comments", {"body": f"Bulk cleanup {stamp}"})
            self.client.patch(
                f"/repos/{full_name}/issues/{number}",
                {"state": "closed", "state_reason": "not_planned"},
            )
        except GitHubAPIError as exc:
            self.reporter.error(f"Close failed: {exc.message}")
            self.stats.issues_failed += 1
            return False
        self.reporter.success("Closed")
        self.stats.issues_closed += 1
        return True

    def lock_issue(self, full_name: str, number: int) -> None:
        try:
            self.client.put(f"/repos/{full_name}/issues/{number}/lock", {"lock_reason": "resolved"})
        except GitHubAPIError:
            self.reporter.warning("Lock failed (insufficient permissions or already locked)")
            return
        self.reporter.success("Locked")
        self.stats.issues_locked += 1
