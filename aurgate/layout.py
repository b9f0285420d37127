from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .config import AurgateConfig


@dataclass(frozen=True)
class ProjectLayout:
    """Where a run keeps its per-package-base working directories.

    data_dir/pkg/<pkgbase>           reviewed recipe (persistent git checkout)
    data_dir/checked_tars/<pkgbase>  latest audited archives
    cache_dir/build/<pkgbase>        disposable build directory
    """

    data_dir: Path
    cache_dir: Path

    @classmethod
    def from_config(cls, cfg: AurgateConfig) -> "ProjectLayout":
        return cls(data_dir=cfg.data_dir, cache_dir=cfg.cache_dir)

    @property
    def global_build_dir(self) -> Path:
        return self.cache_dir / "build"

    def review_dir(self, pkgbase: str) -> Path:
        return self.data_dir / "pkg" / pkgbase

    def build_dir(self, pkgbase: str) -> Path:
        return self.global_build_dir / pkgbase

    def checked_dir(self, pkgbase: str) -> Path:
        return self.data_dir / "checked_tars" / pkgbase
