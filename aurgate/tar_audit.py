"""Archive auditor: classify package archive members and ask a human.

Two containers are understood, picked by file-name suffix:

- ``.tar``     uncompressed tar
- ``.tar.xz``  xz-compressed tar

Each member is classified as normal (not a directory entry, not hidden),
executable (normal with any execute bit) and privileged (raw mode above
0o777, i.e. setuid/setgid/sticky), then the operator reviews the result in
a menu until they accept or abort. Nothing here decides on its own whether
an archive is safe.
"""

from __future__ import annotations

import logging
import lzma
import tarfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from rich.console import Console

from .audit_log import NullAuditLogger, audit_event
from .errors import AuditAborted, UnsupportedFormat
from .lib.terminal import LineReader, run_shell
from .menu import Menu, MenuOption, MenuState

logger = logging.getLogger(__name__)

INSTALL_SCRIPT_NAME = ".INSTALL"
PERMISSION_BITS = 0o777
EXECUTE_BITS = 0o111

SUPPORTED_SUFFIXES: Tuple[Tuple[str, str], ...] = (
    (".tar.xz", "r:xz"),
    (".tar", "r:"),
)


@dataclass(frozen=True)
class ArchiveMember:
    path: str
    mode: int

    @property
    def is_normal(self) -> bool:
        return not self.path.endswith("/") and not self.path.startswith(".")

    @property
    def is_executable(self) -> bool:
        return self.is_normal and bool(self.mode & EXECUTE_BITS)

    @property
    def is_privileged(self) -> bool:
        return self.mode > PERMISSION_BITS


@dataclass
class ArchiveInventory:
    path: Path
    members: List[ArchiveMember] = field(default_factory=list)
    install_script: Optional[str] = None

    @property
    def normal_files(self) -> List[str]:
        return [m.path for m in self.members if m.is_normal]

    @property
    def executable_files(self) -> List[str]:
        return [m.path for m in self.members if m.is_executable]

    @property
    def privileged_files(self) -> List[str]:
        return [m.path for m in self.members if m.is_privileged]

    @property
    def has_install_script(self) -> bool:
        return bool(self.install_script)


def archive_mode(path: Path) -> str:
    """Return the tarfile open mode for path, or raise UnsupportedFormat."""

    name = path.name
    for suffix, mode in SUPPORTED_SUFFIXES:
        if name.endswith(suffix):
            return mode
    raise UnsupportedFormat(path)


def scan_archive(path: Path | str) -> ArchiveInventory:
    p = Path(path)
    mode = archive_mode(p)
    inventory = ArchiveInventory(path=p)

    try:
        with tarfile.open(str(p), mode) as tar:
            for info in tar:
                # tarfile strips the trailing separator of directory entries
                name = info.name + "/" if info.isdir() and not info.name.endswith("/") else info.name
                inventory.members.append(ArchiveMember(path=name, mode=info.mode))
                if name == INSTALL_SCRIPT_NAME:
                    f = tar.extractfile(info)
                    if f is not None:
                        inventory.install_script = f.read().decode("utf-8", errors="replace")
    except (tarfile.TarError, lzma.LZMAError, EOFError) as e:
        raise UnsupportedFormat(p, str(e)) from e

    logger.debug(
        "Scanned %s: %d members, %d executable, %d privileged",
        p,
        len(inventory.members),
        len(inventory.executable_files),
        len(inventory.privileged_files),
    )
    return inventory


class ArchiveAuditor:
    """Interactive review of one archive at a time."""

    def __init__(
        self,
        *,
        reader: LineReader,
        console: Optional[Console] = None,
        shell: str = "bash",
        shell_runner: Callable[[Path, str], int] = run_shell,
        audit_log=None,
    ) -> None:
        self.reader = reader
        self.console = console or Console(stderr=True)
        self.shell = shell
        self.shell_runner = shell_runner
        self.audit_log = audit_log or NullAuditLogger()

    def _print_lines(self, lines: List[str], style: Optional[str] = None) -> None:
        for line in lines:
            self.console.print(line, style=style, markup=False, highlight=False)

    def _inspect(self, inventory: ArchiveInventory) -> None:
        directory = inventory.path.parent
        self.console.print("Exit the shell with `logout` or Ctrl-D...")
        self.shell_runner(directory, self.shell)

    def build_menu(self, inventory: ArchiveInventory) -> Menu:
        options = [
            MenuOption("e", "list executable files", MenuState.LISTING,
                       lambda: self._print_lines(inventory.executable_files)),
            MenuOption("l", "list all files", MenuState.LISTING,
                       lambda: self._print_lines(inventory.normal_files)),
            MenuOption("t", "run shell to inspect", MenuState.INSPECTING,
                       lambda: self._inspect(inventory)),
        ]
        if inventory.has_install_script:
            options.append(
                MenuOption("i", "show install file", MenuState.LISTING,
                           lambda: self.console.print(inventory.install_script, markup=False, highlight=False))
            )
        if inventory.privileged_files:
            options.append(
                MenuOption("s", "!!! list SUID files !!!", MenuState.LISTING,
                           lambda: self._print_lines(inventory.privileged_files, style="bold red"),
                           style="bold red")
            )
        options.append(MenuOption("o", "ok, proceed", MenuState.APPROVED))
        options.append(MenuOption("q", "quit", MenuState.ABORTED))

        def banner() -> None:
            if not inventory.privileged_files:
                self.console.print(f"Package {inventory.path} has no SUID files.", markup=False)

        return Menu(options, reader=self.reader, console=self.console, before_prompt=banner)

    def audit(self, path: Path | str) -> ArchiveInventory:
        """Scan the archive and block until the operator accepts or aborts.

        Raises AuditAborted on abort and UnsupportedFormat for archives that
        cannot be read.
        """

        inventory = scan_archive(path)
        state = self.build_menu(inventory).run()
        details = {
            "archive": str(inventory.path),
            "members": len(inventory.members),
            "executable": len(inventory.executable_files),
            "privileged": inventory.privileged_files,
            "install_script": inventory.has_install_script,
        }
        if state is MenuState.ABORTED:
            self.console.print("Exiting...")
            self.audit_log.log(audit_event(action="archive_audit", ok=False, details=details, error="aborted"))
            raise AuditAborted(inventory.path)

        logger.info("Checked package tar file %s", inventory.path)
        self.audit_log.log(audit_event(action="archive_audit", ok=True, details=details))
        return inventory
