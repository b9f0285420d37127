from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence


class AurgateError(RuntimeError):
    """Base class for fatal, fail-stop conditions.

    ``exit_code`` is the process status main() returns for the error.
    """

    exit_code = 3


class ResolutionFailure(AurgateError):
    """Remote metadata unreachable or malformed, or the graph is unusable."""


class PackagesNotFound(AurgateError):
    exit_code = 1

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = sorted(set(missing))
        super().__init__(
            f"Need to install packages: {', '.join(self.missing)}, but they are not found on AUR."
        )


class UnsupportedFormat(AurgateError):
    def __init__(self, path: Path | str, reason: str | None = None) -> None:
        self.path = Path(path)
        msg = f"Archive {str(self.path)!r} cannot be analyzed. Only .tar.xz and .tar files are supported"
        if reason:
            msg = f"Archive {str(self.path)!r} cannot be analyzed: {reason}"
        super().__init__(msg)


class BuildFailure(AurgateError):
    def __init__(self, pkgbase: str, detail: str = "") -> None:
        self.pkgbase = pkgbase
        super().__init__(f"Build failed for {pkgbase}" + (f": {detail}" if detail else ""))


class WorkdirError(AurgateError):
    def __init__(self, path: Path | str, detail: str) -> None:
        self.path = Path(path)
        super().__init__(f"{detail}: {self.path}")


class AuditAborted(AurgateError):
    """Operator stopped the run from an audit or review prompt."""

    exit_code = 255

    def __init__(self, subject: Path | str) -> None:
        self.subject = str(subject)
        super().__init__(f"Aborted by operator while reviewing {self.subject}")


class CommandError(AurgateError):
    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Command failed ({returncode}): {' '.join(self.argv)}\n{stderr}".rstrip())


class NoArtifacts(AurgateError):
    """A build finished but left no archive matching the expected versions."""

    def __init__(self, pkgbase: str, build_dir: Path | str, whitelist: Iterable[str]) -> None:
        self.pkgbase = pkgbase
        self.build_dir = Path(build_dir)
        self.whitelist = list(whitelist)
        super().__init__(
            f"No archive for {pkgbase} in {self.build_dir} matches any of: {', '.join(self.whitelist)}"
        )
