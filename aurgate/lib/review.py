from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from rich.console import Console

from ..audit_log import NullAuditLogger, audit_event
from ..errors import AuditAborted, WorkdirError
from ..layout import ProjectLayout
from ..menu import Menu, MenuOption, MenuState
from .command import run_cmd
from .terminal import LineReader, run_shell

logger = logging.getLogger(__name__)

REVIEWED_MARKER = "aurgate-reviewed"


class GitRecipeReviewer:
    """Recipe-review collaborator.

    Keeps one git checkout per package-base and asks the operator to look at
    every revision once. A revision that was already approved is not shown
    again.
    """

    def __init__(
        self,
        *,
        layout: ProjectLayout,
        git_url: str,
        reader: LineReader,
        console: Optional[Console] = None,
        shell: str = "bash",
        shell_runner: Callable[[Path, str], int] = run_shell,
        audit_log=None,
    ) -> None:
        self.layout = layout
        self.git_url = git_url.rstrip("/")
        self.reader = reader
        self.console = console or Console(stderr=True)
        self.shell = shell
        self.shell_runner = shell_runner
        self.audit_log = audit_log or NullAuditLogger()

    def _marker(self, repo: Path) -> Path:
        return repo / ".git" / REVIEWED_MARKER

    def _head(self, repo: Path) -> str:
        return run_cmd(["git", "rev-parse", "HEAD"], cwd=str(repo), check=False).stdout.strip()

    def review(self, pkgbase: str) -> None:
        repo = self.layout.review_dir(pkgbase)
        try:
            repo.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WorkdirError(repo, f"Failed to create repository dir for {pkgbase} ({e})") from e

        if not (repo / ".git").exists():
            run_cmd(["git", "clone", f"{self.git_url}/{pkgbase}.git", str(repo)])
        else:
            # A new upstream revision moves HEAD past the marker and is reviewed again.
            logger.info("Updating recipe checkout %s", repo)
            run_cmd(["git", "pull", "--ff-only"], cwd=str(repo))

        head = self._head(repo)
        marker = self._marker(repo)
        if head and marker.exists() and marker.read_text(encoding="utf-8").strip() == head:
            logger.info("Recipe %s already reviewed at %s", pkgbase, head)
            return

        pkgbuild = repo / "PKGBUILD"

        def show_pkgbuild() -> None:
            if pkgbuild.exists():
                self.console.print(pkgbuild.read_text(encoding="utf-8", errors="replace"), markup=False, highlight=False)
            else:
                self.console.print(f"{pkgbuild} does not exist", style="red", markup=False)

        def inspect() -> None:
            self.console.print("Exit the shell with `logout` or Ctrl-D...")
            self.shell_runner(repo, self.shell)

        self.console.print(f"Reviewing {pkgbase} recipe in {repo}", markup=False)
        menu = Menu(
            [
                MenuOption("p", "show PKGBUILD", MenuState.LISTING, show_pkgbuild),
                MenuOption("t", "run shell to inspect", MenuState.INSPECTING, inspect),
                MenuOption("o", "ok, use this revision", MenuState.APPROVED),
                MenuOption("q", "quit", MenuState.ABORTED),
            ],
            reader=self.reader,
            console=self.console,
        )
        state = menu.run()
        if state is MenuState.ABORTED:
            self.audit_log.log(audit_event(action="recipe_review", ok=False, details={"pkgbase": pkgbase}, error="aborted"))
            raise AuditAborted(repo)

        if head:
            marker.write_text(head + "\n", encoding="utf-8")
        self.audit_log.log(audit_event(action="recipe_review", ok=True, details={"pkgbase": pkgbase, "revision": head}))
