from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence, Tuple

from .command import run_cmd

logger = logging.getLogger(__name__)


class Pacman:
    """System package manager collaborator."""

    def __init__(self, *, sudo: Sequence[str] = ("sudo",), dry_run: bool = False) -> None:
        self.sudo = list(sudo)
        self.dry_run = dry_run

    def is_installed(self, dep: str) -> bool:
        """True if something installed locally satisfies dep."""
        r = run_cmd(["pacman", "-T", dep], check=False)
        return r.returncode == 0

    def is_installable(self, dep: str) -> bool:
        """True if a sync repository can satisfy dep.

        This is the split between "pacman installs it" and "we build it".
        """
        r = run_cmd(["pacman", "-Sp", "--print-format", "%n", dep], check=False)
        return r.returncode == 0

    def install_system(self, packages: Sequence[str]) -> None:
        if not packages:
            return
        missing = [p for p in packages if not self.is_installed(p)]
        if not missing:
            logger.info("System dependencies already installed")
            return
        run_cmd(
            [*self.sudo, "pacman", "-S", "--needed", "--asdeps", *missing],
            capture=False,
            dry_run=self.dry_run,
        )

    def install_local(self, files: Sequence[Tuple[str, Path]], *, as_dependency: bool) -> None:
        """Install audited archives; files pairs each path with a target name."""
        if not files:
            return
        for name, path in files:
            logger.info("Installing %s from %s (asdeps=%s)", name, path, as_dependency)
        argv = [*self.sudo, "pacman", "-U"]
        if as_dependency:
            argv.append("--asdeps")
        argv += [str(path) for _name, path in files]
        run_cmd(argv, capture=False, dry_run=self.dry_run)
