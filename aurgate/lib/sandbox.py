from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence

from ..errors import BuildFailure, CommandError
from .command import run_cmd

logger = logging.getLogger(__name__)

# The archive auditor reads .tar and .tar.xz only; makepkg defaults to .tar.zst.
PKGEXT = ".pkg.tar.xz"


def bwrap_argv(bwrap: str, build_dir: Path, *, offline: bool) -> List[str]:
    """Read-only view of the host with only build_dir writable."""

    d = str(build_dir)
    argv = [
        bwrap,
        "--ro-bind", "/", "/",
        "--dev", "/dev",
        "--proc", "/proc",
        "--tmpfs", "/tmp",
        "--bind", d, d,
        "--chdir", d,
        "--unshare-user",
        "--unshare-ipc",
        "--unshare-pid",
        "--unshare-uts",
        "--die-with-parent",
        "--new-session",
    ]
    if offline:
        argv.append("--unshare-net")
    return argv


class BwrapBuilder:
    """Confined-build collaborator: makepkg inside bubblewrap."""

    def __init__(self, *, bwrap: str = "bwrap", makepkg_args: Sequence[str] = (), dry_run: bool = False) -> None:
        self.bwrap = bwrap
        self.makepkg_args = list(makepkg_args)
        self.dry_run = dry_run

    def build(self, build_dir: Path, *, offline: bool) -> None:
        pkgbase = Path(build_dir).name
        try:
            if offline:
                # Sources are fetched first; the build itself gets no network.
                run_cmd(
                    [*bwrap_argv(self.bwrap, build_dir, offline=False), "makepkg", "--verifysource"],
                    env={"PKGEXT": PKGEXT},
                    capture=False,
                    dry_run=self.dry_run,
                )
            run_cmd(
                [*bwrap_argv(self.bwrap, build_dir, offline=offline), "makepkg", *self.makepkg_args],
                env={"PKGEXT": PKGEXT},
                capture=False,
                dry_run=self.dry_run,
            )
        except CommandError as e:
            raise BuildFailure(pkgbase, f"exit status {e.returncode}") from e
        except OSError as e:
            raise BuildFailure(pkgbase, str(e)) from e
        logger.info("Built %s in %s (offline=%s)", pkgbase, build_dir, offline)
