from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

from ..errors import WorkdirError

logger = logging.getLogger(__name__)


def rm_rf(path: Path) -> None:
    """Remove path whatever it is; a missing path is fine."""

    p = Path(path)
    try:
        if p.is_symlink() or p.is_file():
            p.unlink()
        elif p.exists():
            shutil.rmtree(p)
    except OSError as e:
        raise WorkdirError(p, f"Failed to remove ({e})") from e


def copy_tree(src: Path, dst: Path) -> None:
    """Copy the directory src to dst, which must not exist yet."""

    s = Path(src)
    d = Path(dst)
    if not s.is_dir():
        raise WorkdirError(s, "Reviewed recipe directory missing")
    try:
        d.parent.mkdir(parents=True, exist_ok=True)
        shutil.copytree(s, d, symlinks=True)
    except OSError as e:
        raise WorkdirError(d, f"Failed to copy {s} ({e})") from e


@dataclass(frozen=True)
class StagingArea:
    """A directory that only ever holds the latest verified batch."""

    path: Path

    @classmethod
    def fresh(cls, path: Path) -> "StagingArea":
        p = Path(path)
        rm_rf(p)
        try:
            p.mkdir(parents=True)
        except OSError as e:
            raise WorkdirError(p, f"Failed to create staging dir ({e})") from e
        logger.debug("Fresh staging area %s", p)
        return cls(path=p)

    def move_in(self, file: Path) -> Path:
        src = Path(file)
        dst = self.path / src.name
        try:
            shutil.move(str(src), str(dst))
        except OSError as e:
            raise WorkdirError(src, f"Failed to move build artifact to {self.path} ({e})") from e
        return dst

    def files(self) -> list[Path]:
        try:
            return sorted(p for p in self.path.iterdir() if p.is_file())
        except OSError as e:
            raise WorkdirError(self.path, f"Failed to read checked artifacts ({e})") from e
