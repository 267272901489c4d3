"""`github` command: organization copy and bulk cleanup."""

from __future__ import annotations

import tempfile
from pathlib import Path

import typer

from adapters.git_mirror import GitMirror
from adapters.github_client import GitHubClient, resolve_token
from cli import common
from cli.ui_components import (
    build_config_panel,
    build_copy_summary,
    build_issue_cleanup_summary,
    build_repo_cleanup_summary,
)
from core.config import AppSettings
from core.errors import MissingDependencyError
from core.services.org_cleanup import (
    IssueCleaner,
    IssueCleanupRequest,
    RepoDeleter,
    RepoDeletionRequest,
    RepoFilter,
)
from core.services.org_copy import CopyRequest, OrgCopier

app = typer.Typer(no_args_is_help=True, help="GitHub organization copy and cleanup.")


def _authenticated_client(settings: AppSettings, *, throttle: float = 0.0) -> GitHubClient:
    token, source = resolve_token(settings, common.runner())
    client = GitHubClient(token, settings=settings, throttle=throttle)
    try:
        login = client.verify_auth()
    except Exception:
        client.close()
        raise
    common.reporter().success(f"Authenticated as {login or 'unknown'} (token from {source})")
    return client


def _mode(execute: bool) -> str:
    return "EXECUTE (will make changes)" if execute else "DRY-RUN (no changes)"


@app.command("copy")
def copy(
    src_org: str = typer.Option("", "--src-org", envvar="SRC_ORG", help="Source organization."),
    dst_org: str = typer.Option("", "--dst-org", envvar="DST_ORG", help="Destination organization."),
    workdir: Path | None = typer.Option(None, "--workdir", envvar="WORKDIR", help="Scratch directory for mirror clones."),
    throttle: float | None = typer.Option(None, "--throttle", envvar="THROTTLE", min=0, help="Seconds to sleep before each write call."),
    label: str | None = typer.Option(None, "--archived-pr-label", envvar="LABEL_ARCHIVED_PR", help="Label for issues archiving pull requests."),
) -> None:
    """Copy every repository (git refs, wiki, labels, milestones, issues, PRs, discussions)."""

    settings = AppSettings()
    with common.exit_on_error():
        reporter = common.reporter()
        runner = common.runner()
        request = CopyRequest(
            source_org=src_org,
            dest_org=dst_org,
            workdir=workdir or Path(tempfile.gettempdir()) / f"org-copy-{src_org}-to-{dst_org}",
            archived_pr_label=label or settings.archived_pr_label,
        )

        if not runner.which("git"):
            raise MissingDependencyError(["git"], hint="Install git and retry.")
        if not runner.which("git-lfs"):
            reporter.warning("git-lfs not found: LFS objects will not be copied")

        common.console.print(
            build_config_panel(
                "Org Copy",
                [
                    ("Source", request.source_org),
                    ("Destination", request.dest_org),
                    ("Workdir", str(request.workdir)),
                    ("Throttle", f"{throttle if throttle is not None else settings.copy_throttle_seconds}s"),
                    ("Archived PR label", request.archived_pr_label),
                ],
            )
        )

        with _authenticated_client(
            settings, throttle=throttle if throttle is not None else settings.copy_throttle_seconds
        ) as client:
            mirror = GitMirror(runner=runner, reporter=reporter, workdir=request.workdir, token=client.token)
            stats = OrgCopier(client=client, mirror=mirror, reporter=reporter, request=request).run()

        common.console.print(build_copy_summary(stats))
        reporter.success(f"Copy finished: {request.source_org} ➜ {request.dest_org}")
        if stats.repos_failed:
            raise typer.Exit(code=2)


@app.command("delete-repos")
def delete_repos(
    org: str = typer.Argument(..., help="Organization to delete repositories from."),
    repos: list[str] = typer.Argument(None, help="Repository names (omit with --all)."),
    all_repos: bool = typer.Option(False, "--all", help="Every repository in the organization."),
    yes: bool = typer.Option(False, "--yes", help="Execute changes (default is dry-run)."),
    include_archived: bool = typer.Option(False, "--include-archived", help="Also process archived repositories."),
    match: str | None = typer.Option(None, "--match", help="Only repos whose owner/name matches this regex."),
    exclude: str | None = typer.Option(None, "--exclude", help="Skip repos whose owner/name matches this regex."),
) -> None:
    """Delete repositories. Dry-run unless --yes."""

    settings = AppSettings()
    with common.exit_on_error():
        request = RepoDeletionRequest(
            org=org,
            repos=tuple(repos or ()),
            all_repos=all_repos,
            execute=yes,
            filters=RepoFilter(include_archived=include_archived, match=match, exclude=exclude),
        )
        reporter = common.reporter()
        common.console.print(
            build_config_panel(
                "Repository Deletion",
                [
                    ("Organization", org),
                    ("Mode", "EXECUTE (PERMANENT DELETION)" if yes else "DRY-RUN (no changes)"),
                    ("Target", "ALL repositories" if all_repos else ", ".join(request.repos)),
                    ("Include archived", str(include_archived).lower()),
                    ("Match", match or "-"),
                    ("Exclude", exclude or "-"),
                ],
            )
        )
        if yes:
            reporter.warning("⚠️  THIS WILL PERMANENTLY DELETE REPOSITORIES ⚠️")

        with _authenticated_client(settings) as client:
            deleter = RepoDeleter(
                client=client,
                reporter=reporter,
                request=request,
                pause=settings.delete_throttle_seconds,
            )
            stats = deleter.run()

        common.console.print(build_repo_cleanup_summary(stats, execute=yes))
        if not yes:
            reporter.info("Dry-run complete. Use --yes to execute changes.")
        if stats.repos_failed:
            raise typer.Exit(code=2)


@app.command("delete-issues")
def delete_issues(
    org: str = typer.Argument(..., help="Organization whose issues are cleaned up."),
    yes: bool = typer.Option(False, "--yes", help="Execute changes (default is dry-run)."),
    lock: bool = typer.Option(False, "--lock", help="Lock issues after closing."),
    only_open: bool = typer.Option(False, "--only-open", help="Only process open issues."),
    really_delete: bool = typer.Option(False, "--really-delete", help="Try to delete issues (falls back to close)."),
    include_archived: bool = typer.Option(False, "--include-archived", help="Also process archived repositories."),
    match: str | None = typer.Option(None, "--match", help="Only repos whose owner/name matches this regex."),
    exclude: str | None = typer.Option(None, "--exclude", help="Skip repos whose owner/name matches this regex."),
) -> None:
    """Close (or delete) every issue of the organization. Dry-run unless --yes."""

    settings = AppSettings()
    with common.exit_on_error():
        request = IssueCleanupRequest(
            org=org,
            execute=yes,
            lock=lock,
            only_open=only_open,
            really_delete=really_delete,
            filters=RepoFilter(include_archived=include_archived, match=match, exclude=exclude),
        )
        reporter = common.reporter()
        common.console.print(
            build_config_panel(
                "Issue Cleanup",
                [
                    ("Organization", org),
                    ("Mode", _mode(yes)),
                    ("Issue state", "open" if only_open else "all"),
                    ("Really delete", str(really_delete).lower()),
                    ("Lock", str(lock).lower()),
                    ("Include archived", str(include_archived).lower()),
                    ("Match", match or "-"),
                    ("Exclude", exclude or "-"),
                ],
            )
        )

        with _authenticated_client(settings) as client:
            cleaner = IssueCleaner(
                client=client,
                reporter=reporter,
                request=request,
                pause=settings.issue_throttle_seconds,
            )
            stats = cleaner.run()

        common.console.print(build_issue_cleanup_summary(stats))
        if not yes:
            reporter.info("Dry-run complete. Use --yes to execute changes.")
        if stats.issues_failed:
            raise typer.Exit(code=2)
