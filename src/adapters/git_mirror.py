"""Git mirroring through the `git` CLI.

Por qué subprocess y no una librería:
- `git clone --mirror` / `git push --mirror` y `git lfs` son las herramientas de
  referencia; envolverlas mantiene las refs igual que en una copia manual.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from core.errors import ToolError
from core.interfaces.reporter import Reporter
from core.interfaces.runner import CommandRunner

logger = logging.getLogger(__name__)

# GitHub rejects pushes into these namespaces; they are dropped from the mirror first.
READ_ONLY_REF_PATTERNS = (
    "refs/pull/*",
    "refs/pull/*/*",
    "refs/remotes/*",
    "refs/replace/*",
    "refs/original/*",
)


@dataclass
class GitMirror:
    runner: CommandRunner
    reporter: Reporter
    workdir: Path
    token: str
    host: str = "github.com"

    def _url(self, full_name: str, *, suffix: str = ".git") -> str:
        return f"https://x-access-token:{self.token}@{self.host}/{full_name}{suffix}"

    @property
    def lfs_available(self) -> bool:
        return self.runner.which("git-lfs") is not None

    def mirror_repo(self, source: str, destination: str) -> None:
        """Mirror branches, tags and LFS objects of `source` into `destination`.

        Raises `ToolError` when the clone or the mirror push fails; the
        working clone is removed either way.
        """

        git_dir = self.workdir / f"{destination.split('/')[-1]}.git"
        shutil.rmtree(git_dir, ignore_errors=True)
        self.workdir.mkdir(parents=True, exist_ok=True)
        try:
            self.reporter.step(f"Cloning (mirror) {source}")
            self.runner.run(["git", "clone", "--mirror", self._url(source), str(git_dir)])

            self.reporter.step("Stripping read-only ref namespaces")
            refs = self.runner.run(
                [
                    "git",
                    f"--git-dir={git_dir}",
                    "for-each-ref",
                    "--format=delete %(refname)",
                    *READ_ONLY_REF_PATTERNS,
                ]
            ).stdout
            if refs and refs.strip():
                self.runner.run(["git", f"--git-dir={git_dir}", "update-ref", "--stdin"], input=refs)

            self.reporter.step(f"Pushing (mirror) to {destination}")
            self.runner.run(["git", f"--git-dir={git_dir}", "push", "--mirror", self._url(destination)])

            if self.lfs_available:
                self.reporter.step(f"Pushing LFS objects for {destination}")
                self.runner.run(["git", "lfs", "fetch", "--all"], cwd=str(git_dir), check=False)
                self.runner.run(["git", "lfs", "push", "--all", self._url(destination)], cwd=str(git_dir), check=False)
        finally:
            shutil.rmtree(git_dir, ignore_errors=True)

    def wiki_exists(self, source: str) -> bool:
        result = self.runner.run(["git", "ls-remote", self._url(source, suffix=".wiki.git")], check=False)
        return result.returncode == 0

    def mirror_wiki(self, source: str, destination: str) -> bool:
        """Bare clone plus mirror push of the wiki repository; False on failure."""

        wiki_dir = self.workdir / f"{destination.split('/')[-1]}.wiki.git"
        shutil.rmtree(wiki_dir, ignore_errors=True)
        self.workdir.mkdir(parents=True, exist_ok=True)
        try:
            self.runner.run(["git", "clone", "--bare", self._url(source, suffix=".wiki.git"), str(wiki_dir)])
            self.runner.run(
                ["git", f"--git-dir={wiki_dir}", "push", "--mirror", self._url(destination, suffix=".wiki.git")]
            )
        except ToolError as exc:
            logger.debug("wiki mirror failed: %s", exc)
            return False
        finally:
            shutil.rmtree(wiki_dir, ignore_errors=True)
        return True
