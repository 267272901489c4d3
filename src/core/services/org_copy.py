"""Copy every repository of one GitHub organization into another.

Per repository, in order: destination repo, git refs (+LFS), wiki, labels,
milestones, issues, pull requests archived as issues, discussions.

Por qué esta forma:
- Cada paso es best effort: un fallo se informa y se cuenta, y se sigue con el
  siguiente paso (o repositorio). Solo abortan antes la falta de entradas o de auth.
- Re-ejecutar es seguro para issues: una issue con el mismo título abierta el
  mismo día se reconoce y no se vuelve a crear ni a comentar.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Callable

from adapters.git_mirror import GitMirror
from adapters.github_client import GitHubClient
from core.domain.models import (
    CopyStats,
    IssueRecord,
    Label,
    Milestone,
    PullRequestRecord,
    Repository,
    ThreadEntry,
    creation_day,
)
from core.errors import GitHubAPIError, SetupError, ToolError, UsageError
from core.interfaces.reporter import Reporter

logger = logging.getLogger(__name__)

ARCHIVED_PR_LABEL_COLOR = "6e5494"
ARCHIVED_PR_LABEL_DESCRIPTION = "Archival of original Pull Request"

_OPENED_RE = re.compile(r"Opened:\s*([0-9][0-9T:.+\-Z]*)")

DISCUSSIONS_QUERY = """
query($so:String!,$sr:String!,$do:String!,$dr:String!,$after:String){
  src: repository(owner:$so,name:$sr){
    discussions(first:50, after:$after, orderBy:{field:CREATED_AT,direction:ASC}){
      pageInfo{ hasNextPage endCursor }
      nodes{
        number title url body createdAt
        category{ name }
        comments(first:100){ nodes{ author{login} createdAt body } }
      }
    }
  }
  dst: repository(owner:$do,name:$dr){
    id
    discussionCategories(first:25){ nodes{ id name } }
  }
}
"""

CREATE_DISCUSSION = """
mutation($rid:ID!,$cid:ID!,$title:String!,$body:String!){
  createDiscussion(input:{repositoryId:$rid,categoryId:$cid,title:$title,body:$body}){
    discussion{ id number }
  }
}
"""

ADD_DISCUSSION_COMMENT = """
mutation($id:ID!,$body:String!){
  addDiscussionComment(input:{discussionId:$id, body:$body}){ comment{ id } }
}
"""


@dataclass
class CopyRequest:
    """Parameters of one organization copy."""

    source_org: str
    dest_org: str
    workdir: Path
    archived_pr_label: str = "archived-pr"

    def __post_init__(self) -> None:
        if not self.source_org or not self.dest_org:
            raise UsageError(
                "SRC_ORG and DST_ORG must be set",
                hint="Example: SRC_ORG=old-org DST_ORG=new-org system-setup github copy",
            )


def issue_copy_body(issue: IssueRecord) -> str:
    return (
        f"(Copied from {issue.html_url}\n"
        f"Original author: @{issue.author} • Opened: {issue.created_at})\n\n"
        f"{issue.body}"
    )


def comment_copy_body(author: str, created_at: str, body: str) -> str:
    return f"**(Original comment by @{author} on {created_at})**\n\n{body}"


def pr_archive_title(pr: PullRequestRecord) -> str:
    return f"[PR #{pr.number}] {pr.title}"


def pr_archive_body(pr: PullRequestRecord) -> str:
    header = (
        f"**Archived Pull Request** (copied from {pr.html_url})\n\n"
        f"- Original author: @{pr.author}\n"
        f"- State: {pr.state}\n"
        f"- Merged at: {pr.merged_at}\n"
        f"- Base: `{pr.base_ref}`\n"
        f"- Head: `{pr.head_ref}`\n"
        f"- Opened: {pr.created_at}\n"
    )
    return f"{header}\n---\n{pr.body}"


def original_creation_day(issue: IssueRecord) -> date | None:
    """Day the copied item was opened in the source, read from its provenance header.

    Destination issues created by a copy carry `Opened: <timestamp>`; any
    other issue falls back to its own creation time.
    """

    match = _OPENED_RE.search(issue.body or "")
    if match:
        day = creation_day(match.group(1))
        if day is not None:
            return day
    return creation_day(issue.created_at)


@dataclass
class DestinationIssueIndex:
    """Existing destination issues keyed by title, for duplicate detection."""

    by_title: dict[str, list[tuple[int, date | None]]] = field(default_factory=dict)

    @classmethod
    def from_issues(cls, issues: list[IssueRecord]) -> "DestinationIssueIndex":
        index = cls()
        for issue in issues:
            if not issue.is_pull_request:
                index.add(issue.title, issue.number, original_creation_day(issue))
        return index

    def add(self, title: str, number: int, day: date | None) -> None:
        self.by_title.setdefault(title, []).append((number, day))

    def find(self, title: str, created_at: str) -> int | None:
        """Number of an issue with this exact title opened the same day, else None."""

        wanted = creation_day(created_at)
        for number, day in self.by_title.get(title, []):
            if day is not None and day == wanted:
                return number
        return None


class OrgCopier:
    """Runs the copy; counters are collected in `stats`."""

    def __init__(
        self,
        *,
        client: GitHubClient,
        mirror: GitMirror,
        reporter: Reporter,
        request: CopyRequest,
    ) -> None:
        self.client = client
        self.mirror = mirror
        self.reporter = reporter
        self.request = request
        self.stats = CopyStats()

    @property
    def src(self) -> str:
        return self.request.source_org

    @property
    def dst(self) -> str:
        return self.request.dest_org

    def run(self) -> CopyStats:
        self.reporter.info(f"Listing repositories in {self.src}...")
        for data in self.client.paginate(f"/orgs/{self.src}/repos"):
            repo = Repository.model_validate(data)
            self.reporter.header(f"Processing repository: {repo.name}")
            self.stats.repos_processed += 1
            try:
                self.copy_repository(repo)
            except SetupError as exc:
                self.stats.repos_failed += 1
                self.reporter.error(f"Failed to copy {repo.name}: {exc.message}")
        return self.stats

    def _best_effort(self, what: str, action: Callable[[], Any]) -> None:
        try:
            action()
        except (GitHubAPIError, ToolError) as exc:
            logger.debug("%s failed", what, exc_info=True)
            self.reporter.warning(f"{what} failed: {exc.message}")

    def copy_repository(self, repo: Repository) -> None:
        created = self.ensure_dest_repo(repo)

        mirrored = True
        try:
            self.mirror.mirror_repo(f"{self.src}/{repo.name}", f"{self.dst}/{repo.name}")
        except ToolError as exc:
            mirrored = False
            self.reporter.error(f"Git push --mirror failed for {repo.name}: {exc.message}")

        if created and mirrored:
            # The branch only exists once the refs have been pushed.
            self._best_effort(
                "Setting default branch",
                lambda: self.client.patch(f"/repos/{self.dst}/{repo.name}", {"default_branch": "development"}),
            )

        if repo.has_wiki:
            self._best_effort("Wiki copy", lambda: self.copy_wiki(repo.name))

        self._best_effort("Label copy", lambda: self.copy_labels(repo.name))
        self._best_effort("Milestone copy", lambda: self.copy_milestones(repo.name))

        index = self.destination_issue_index(repo.name)
        self._best_effort("Issue copy", lambda: self.copy_issues(repo.name, index))
        self._best_effort("Pull request archival", lambda: self.archive_pull_requests(repo.name, index))
        self._best_effort("Discussion copy", lambda: self.copy_discussions(repo.name))

        if repo.archived:
            self.reporter.warning("Source repository is archived; destination remains unarchived by default")

    # --- repository ---------------------------------------------------------

    def ensure_dest_repo(self, repo: Repository) -> bool:
        """Create the destination repository if needed; True when it was created."""

        if self.client.exists(f"/repos/{self.dst}/{repo.name}"):
            return False

        visibility = "private" if repo.visibility == "internal" else repo.visibility
        self.reporter.step(f"Creating repository {self.dst}/{repo.name} ({visibility})")
        self.client.post(f"/orgs/{self.dst}/repos", {"name": repo.name, "visibility": visibility})
        self.stats.repos_created += 1
        self._best_effort(
            "Enabling discussions",
            lambda: self.client.patch(f"/repos/{self.dst}/{repo.name}", {"has_discussions": True}),
        )
        return True

    def copy_wiki(self, name: str) -> None:
        source, destination = f"{self.src}/{name}", f"{self.dst}/{name}"
        if not self.mirror.wiki_exists(source):
            self.reporter.step(f"No wiki detected for {name}")
            return
        self.reporter.step(f"Copying wiki for {name}")
        self._best_effort("Enabling wiki", lambda: self.client.patch(f"/repos/{destination}", {"has_wiki": True}))
        if self.mirror.mirror_wiki(source, destination):
            self.stats.wikis_copied += 1
            self.reporter.success(f"Wiki copied for {name}")
        else:
            self.reporter.warning(f"Wiki copy failed for {name} (the destination wiki may need a first page)")

    # --- labels and milestones ------------------------------------------------

    def _dest_label_names(self, name: str) -> set[str]:
        return {item["name"] for item in self.client.paginate(f"/repos/{self.dst}/{name}/labels")}

    def ensure_label(self, name: str, label: Label, existing: set[str]) -> None:
        if label.name in existing:
            return
        try:
            self.client.post(
                f"/repos/{self.dst}/{name}/labels",
                {"name": label.name, "color": label.color, "description": label.description or ""},
            )
        except GitHubAPIError as exc:
            self.reporter.warning(f"Label '{label.name}' not created: {exc.message}")
            return
        existing.add(label.name)
        self.stats.labels_copied += 1

    def copy_labels(self, name: str) -> None:
        self.reporter.step(f"Copying labels for {name}")
        existing = self._dest_label_names(name)
        for data in self.client.paginate(f"/repos/{self.src}/{name}/labels"):
            self.ensure_label(name, Label.model_validate(data), existing)

    def _dest_milestones(self, name: str) -> dict[str, int]:
        return {
            item["title"]: int(item["number"])
            for item in self.client.paginate(f"/repos/{self.dst}/{name}/milestones", params={"state": "all"})
        }

    def copy_milestones(self, name: str) -> None:
        self.reporter.step(f"Copying milestones for {name}")
        existing = self._dest_milestones(name)
        for data in self.client.paginate(f"/repos/{self.src}/{name}/milestones", params={"state": "all"}):
            milestone = Milestone.model_validate(data)
            if milestone.title in existing:
                continue
            payload: dict[str, Any] = {"title": milestone.title}
            if milestone.description:
                payload["description"] = milestone.description
            if milestone.due_on:
                payload["due_on"] = milestone.due_on
            try:
                created = self.client.post(f"/repos/{self.dst}/{name}/milestones", payload)
            except GitHubAPIError as exc:
                self.reporter.warning(f"Milestone '{milestone.title}' not created: {exc.message}")
                continue
            existing[milestone.title] = int((created or {}).get("number") or 0)
            self.stats.milestones_copied += 1

    # --- issues ---------------------------------------------------------------

    def destination_issue_index(self, name: str) -> DestinationIssueIndex:
        try:
            issues = [
                IssueRecord.from_api(item)
                for item in self.client.paginate(f"/repos/{self.dst}/{name}/issues", params={"state": "all"})
            ]
        except GitHubAPIError as exc:
            self.reporter.warning(f"Could not list destination issues for {name}: {exc.message}")
            issues = []
        return DestinationIssueIndex.from_issues(issues)

    def create_issue(
        self,
        name: str,
        index: DestinationIssueIndex,
        *,
        title: str,
        body: str,
        labels: list[str],
        created_at: str,
        state: str,
        milestone_number: int | None = None,
    ) -> int | None:
        """Create the issue unless a duplicate exists; None means skipped."""

        existing = index.find(title, created_at)
        if existing is not None:
            self.reporter.info(f"Issue already exists in {self.dst}/{name} with same title, skipping (#{existing})")
            self.stats.issues_skipped += 1
            return None

        payload: dict[str, Any] = {"title": title, "body": body, "labels": labels}
        if milestone_number:
            payload["milestone"] = milestone_number
        created = self.client.post(f"/repos/{self.dst}/{name}/issues", payload)
        number = int(created["number"])
        index.add(title, number, creation_day(created_at))

        if state == "closed":
            # The issue exists now; a failed close must not lose its comments.
            try:
                self.client.patch(f"/repos/{self.dst}/{name}/issues/{number}", {"state": "closed"})
            except GitHubAPIError as exc:
                self.reporter.warning(f"Issue #{number} created but not closed: {exc.message}")
        return number

    def post_comment(self, name: str, number: int, body: str) -> bool:
        try:
            self.client.post(f"/repos/{self.dst}/{name}/issues/{number}/comments", {"body": body})
        except GitHubAPIError as exc:
            self.reporter.warning(f"Comment on #{number} not copied: {exc.message}")
            return False
        return True

    def copy_issues(self, name: str, index: DestinationIssueIndex) -> None:
        self.reporter.step(f"Copying issues for {name}")
        milestones: dict[str, int] | None = None

        for data in self.client.paginate(f"/repos/{self.src}/{name}/issues", params={"state": "all"}):
            issue = IssueRecord.from_api(data)
            if issue.is_pull_request:
                continue

            milestone_number = None
            if issue.milestone_title:
                if milestones is None:
                    milestones = self._dest_milestones(name)
                milestone_number = milestones.get(issue.milestone_title)

            try:
                number = self.create_issue(
                    name,
                    index,
                    title=issue.title,
                    body=issue_copy_body(issue),
                    labels=issue.labels,
                    created_at=issue.created_at,
                    state=issue.state,
                    milestone_number=milestone_number,
                )
            except GitHubAPIError as exc:
                self.reporter.warning(f"Issue #{issue.number} not copied: {exc.message}")
                continue
            if number is None:
                continue
            self.stats.issues_copied += 1

            try:
                comments = list(self.client.paginate(f"/repos/{self.src}/{name}/issues/{issue.number}/comments"))
            except GitHubAPIError as exc:
                self.reporter.warning(f"Comments of issue #{issue.number} not copied: {exc.message}")
                continue
            for comment in comments:
                body = comment_copy_body(
                    (comment.get("user") or {}).get("login") or "unknown",
                    comment.get("created_at") or "",
                    comment.get("body") or "",
                )
                if self.post_comment(name, number, body):
                    self.stats.issue_comments_copied += 1

    # --- pull requests --------------------------------------------------------

    def pull_request_thread(self, name: str, number: int) -> list[ThreadEntry]:
        """Issue comments, review comments and reviews of a PR, oldest first."""

        entries: list[ThreadEntry] = []
        base = f"/repos/{self.src}/{name}"
        for item in self.client.paginate(f"{base}/issues/{number}/comments"):
            entries.append(
                ThreadEntry(
                    kind="issue_comment",
                    author=(item.get("user") or {}).get("login") or "unknown",
                    created_at=item.get("created_at") or "",
                    body=item.get("body") or "",
                )
            )
        for item in self.client.paginate(f"{base}/pulls/{number}/comments"):
            line = item.get("original_line") or item.get("line") or 0
            entries.append(
                ThreadEntry(
                    kind="review_comment",
                    author=(item.get("user") or {}).get("login") or "unknown",
                    created_at=item.get("created_at") or "",
                    body=f"{item.get('body') or ''}\n\n(File: {item.get('path')}, Line: {line})",
                )
            )
        for item in self.client.paginate(f"{base}/pulls/{number}/reviews"):
            entries.append(
                ThreadEntry(
                    kind="review",
                    author=(item.get("user") or {}).get("login") or "unknown",
                    created_at=item.get("submitted_at") or item.get("created_at") or "",
                    body=f"[Review state: {item.get('state')}]\n\n{item.get('body') or ''}",
                )
            )
        entries.sort(key=lambda entry: entry.created_at)
        return entries

    def archive_pull_requests(self, name: str, index: DestinationIssueIndex) -> None:
        self.reporter.step(f"Archiving PRs as issues for {name}")
        label = self.request.archived_pr_label
        self.ensure_label(
            name,
            Label(name=label, color=ARCHIVED_PR_LABEL_COLOR, description=ARCHIVED_PR_LABEL_DESCRIPTION),
            self._dest_label_names(name),
        )

        for data in self.client.paginate(f"/repos/{self.src}/{name}/pulls", params={"state": "all"}):
            pr = PullRequestRecord.from_api(data)
            try:
                number = self.create_issue(
                    name,
                    index,
                    title=pr_archive_title(pr),
                    body=pr_archive_body(pr),
                    labels=[label],
                    created_at=pr.created_at,
                    state=pr.state,
                )
            except GitHubAPIError as exc:
                self.reporter.warning(f"PR #{pr.number} not archived: {exc.message}")
                continue
            if number is None:
                continue
            self.stats.prs_archived += 1

            try:
                thread = self.pull_request_thread(name, pr.number)
            except GitHubAPIError as exc:
                self.reporter.warning(f"Comments of PR #{pr.number} not copied: {exc.message}")
                continue
            for entry in thread:
                if self.post_comment(name, number, entry.render()):
                    self.stats.pr_comments_copied += 1

    # --- discussions ------------------------------------------------------------

    def copy_discussions(self, name: str) -> None:
        self.reporter.step(f"Copying discussions for {name}")
        variables: dict[str, Any] = {"so": self.src, "sr": name, "do": self.dst, "dr": name, "after": None}
        try:
            page = self.client.graphql(DISCUSSIONS_QUERY, variables)
        except GitHubAPIError as exc:
            self.reporter.warning(f"GraphQL fetch failed for {name} (likely no Discussions): {exc.message}")
            return

        dst = page.get("dst") or {}
        categories = (dst.get("discussionCategories") or {}).get("nodes") or []
        if not categories:
            self.reporter.warning(f"Destination repo {self.dst}/{name} has no discussion categories; skipping discussions")
            return
        category_ids = {cat["name"]: cat["id"] for cat in categories}
        fallback_category = categories[0]["id"]

        while True:
            discussions = ((page.get("src") or {}).get("discussions")) or {}
            for node in discussions.get("nodes") or []:
                self._copy_discussion(dst["id"], node, category_ids, fallback_category)
            info = discussions.get("pageInfo") or {}
            if not info.get("hasNextPage"):
                break
            variables["after"] = info.get("endCursor")
            page = self.client.graphql(DISCUSSIONS_QUERY, variables)

    def _copy_discussion(
        self,
        repository_id: str,
        node: dict[str, Any],
        category_ids: dict[str, str],
        fallback_category: str,
    ) -> None:
        category = (node.get("category") or {}).get("name") or ""
        try:
            created = self.client.graphql(
                CREATE_DISCUSSION,
                {
                    "rid": repository_id,
                    "cid": category_ids.get(category, fallback_category),
                    "title": node.get("title") or "",
                    "body": f"(Copied from {node.get('url')})\n\n{node.get('body') or ''}",
                },
                mutation=True,
            )
        except GitHubAPIError as exc:
            self.reporter.warning(f"Failed to create discussion '{node.get('title')}': {exc.message}")
            return
        self.stats.discussions_copied += 1
        discussion_id = created["createDiscussion"]["discussion"]["id"]

        for comment in (node.get("comments") or {}).get("nodes") or []:
            body = comment_copy_body(
                (comment.get("author") or {}).get("login") or "unknown",
                comment.get("createdAt") or "",
                comment.get("body") or "",
            )
            try:
                self.client.graphql(ADD_DISCUSSION_COMMENT, {"id": discussion_id, "body": body}, mutation=True)
            except GitHubAPIError as exc:
                self.reporter.warning(f"Discussion comment not copied: {exc.message}")
                continue
            self.stats.discussion_comments_copied += 1
