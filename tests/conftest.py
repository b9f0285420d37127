"""Pytest configuration and fixtures."""

from __future__ import annotations

import io
import tarfile
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pytest
from rich.console import Console

from aurgate.layout import ProjectLayout
from aurgate.lib.aur_rpc import MetadataRecord


def write_tar(path: Path, members: Iterable[Tuple[str, int, Optional[bytes]]]) -> Path:
    """Write an archive at path; members are (name, mode, data) and data=None is a directory."""

    mode = "w:xz" if path.name.endswith(".tar.xz") else "w"
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(str(path), mode) as tar:
        for name, perm, data in members:
            info = tarfile.TarInfo(name=name.rstrip("/"))
            info.mode = perm
            if data is None:
                info.type = tarfile.DIRTYPE
                tar.addfile(info)
            else:
                info.size = len(data)
                tar.addfile(info, io.BytesIO(data))
    return path


PLAIN_MEMBERS = [
    (".PKGINFO", 0o644, b"pkgname = demo\n"),
    ("usr/", 0o755, None),
    ("usr/bin/", 0o755, None),
    ("usr/bin/demo", 0o755, b"#!/bin/sh\n"),
    ("usr/share/doc/demo/README", 0o644, b"hello\n"),
]


@pytest.fixture
def make_tar(tmp_path: Path):
    def _make(name: str, members=None, directory: Optional[Path] = None) -> Path:
        return write_tar((directory or tmp_path) / name, PLAIN_MEMBERS if members is None else members)

    return _make


@pytest.fixture
def console() -> Console:
    return Console(file=io.StringIO(), width=200, soft_wrap=True)


def console_text(console: Console) -> str:
    return console.file.getvalue()


@pytest.fixture
def layout(tmp_path: Path) -> ProjectLayout:
    return ProjectLayout(data_dir=tmp_path / "data", cache_dir=tmp_path / "cache")


def record(name: str, version: str = "1.0-1", *, base: Optional[str] = None, depends=(), make_depends=()) -> MetadataRecord:
    return MetadataRecord(
        name=name,
        package_base=base or name,
        version=version,
        depends=tuple(depends),
        make_depends=tuple(make_depends),
    )


class FakeMetadata:
    def __init__(self, records: Iterable[MetadataRecord]) -> None:
        self.records = {r.name: r for r in records}
        self.calls: List[List[str]] = []

    def info(self, names: Sequence[str]) -> Dict[str, MetadataRecord]:
        self.calls.append(list(names))
        return {n: self.records[n] for n in names if n in self.records}


class FakeSystem:
    def __init__(self, installed=(), installable=()) -> None:
        self.installed = set(installed)
        self.installable = set(installable)
        self.system_installs: List[List[str]] = []
        self.local_installs: List[Tuple[List[Tuple[str, Path]], bool]] = []
        self.events: List[str] = []

    def is_installed(self, dep: str) -> bool:
        return dep in self.installed

    def is_installable(self, dep: str) -> bool:
        return dep in self.installable

    def install_system(self, packages: Sequence[str]) -> None:
        self.system_installs.append(list(packages))

    def install_local(self, files, *, as_dependency: bool) -> None:
        self.local_installs.append((list(files), as_dependency))
        self.events.append("install:" + ",".join(sorted({name for name, _p in files})))


class FakeReviewer:
    """Puts a recipe checkout (with .git) where the orchestrator expects it."""

    def __init__(self, layout: ProjectLayout) -> None:
        self.layout = layout
        self.reviewed: List[str] = []

    def review(self, pkgbase: str) -> None:
        repo = self.layout.review_dir(pkgbase)
        (repo / ".git").mkdir(parents=True, exist_ok=True)
        (repo / "PKGBUILD").write_text(f"pkgbase={pkgbase}\n", encoding="utf-8")
        self.reviewed.append(pkgbase)


class FakeBuilder:
    """Writes one archive per expected output into the build directory."""

    def __init__(self, outputs: Dict[str, List[str]], events: Optional[List[str]] = None, fail: Iterable[str] = ()) -> None:
        self.outputs = outputs
        self.events = events if events is not None else []
        self.fail = set(fail)
        self.builds: List[Tuple[Path, bool]] = []

    def build(self, build_dir: Path, *, offline: bool) -> None:
        from aurgate.errors import BuildFailure

        pkgbase = build_dir.name
        self.builds.append((build_dir, offline))
        self.events.append(f"build:{pkgbase}")
        if pkgbase in self.fail:
            raise BuildFailure(pkgbase, "exit status 4")
        for name in self.outputs.get(pkgbase, []):
            write_tar(build_dir / name, PLAIN_MEMBERS)


class ApprovingAuditor:
    def __init__(self, events: Optional[List[str]] = None) -> None:
        self.audited: List[Path] = []
        self.events = events if events is not None else []

    def audit(self, path: Path) -> None:
        self.audited.append(Path(path))
        self.events.append(f"audit:{Path(path).name}")
