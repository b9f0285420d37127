from __future__ import annotations

import enum
import itertools
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from rich.console import Console

from .artifact_gate import archive_whitelist, check_and_move
from .audit_log import AuditLogger, NullAuditLogger, audit_event
from .config import AurgateConfig
from .errors import ResolutionFailure
from .layout import ProjectLayout
from .lib.aur_rpc import AurRpcClient, AurRpcConfig
from .lib.fsops import StagingArea, copy_tree, rm_rf
from .lib.pacman import Pacman
from .lib.review import GitRecipeReviewer
from .lib.sandbox import BwrapBuilder
from .lib.terminal import LineReader, StdinLineReader
from .menu import Menu, MenuOption, MenuState
from .resolver import MetadataSource, Resolution, resolve
from .tar_audit import ArchiveAuditor

logger = logging.getLogger(__name__)


class RunPhase(enum.Enum):
    RESOLVING = "resolving"
    CONFIRMING = "confirming"
    BUILDING = "building"
    AUDITING = "auditing"
    INSTALLING = "installing"
    DONE = "done"
    ABORTED = "aborted"


class SystemManager(Protocol):
    def is_installed(self, dep: str) -> bool:
        ...

    def is_installable(self, dep: str) -> bool:
        ...

    def install_system(self, packages: Sequence[str]) -> None:
        ...

    def install_local(self, files: Sequence[Tuple[str, Path]], *, as_dependency: bool) -> None:
        ...


class Reviewer(Protocol):
    def review(self, pkgbase: str) -> None:
        ...


class Builder(Protocol):
    def build(self, build_dir: Path, *, offline: bool) -> None:
        ...


@dataclass(frozen=True)
class BuildPlanEntry:
    pkgbase: str
    depth: int
    representative: str
    targets: Tuple[str, ...]


@dataclass(frozen=True)
class Tier:
    depth: int
    entries: Tuple[BuildPlanEntry, ...]

    @property
    def pkgbases(self) -> List[str]:
        return [e.pkgbase for e in self.entries]


def plan_builds(resolution: Resolution) -> List[BuildPlanEntry]:
    """One entry per package-base, at the deepest depth of any of its targets.

    A package-base may produce several split targets reached at different
    depths; it is still built exactly once.
    """

    best: Dict[str, Tuple[int, str]] = {}
    targets_of: Dict[str, List[str]] = {}
    for name, record in resolution.records.items():
        if name not in resolution.depths:
            raise ResolutionFailure(f"Internal error: target {name} has no depth")
        depth = resolution.depths[name]
        base = record.package_base
        targets_of.setdefault(base, []).append(name)
        if base not in best or depth > best[base][0]:
            best[base] = (depth, name)

    entries = [
        BuildPlanEntry(pkgbase=base, depth=depth, representative=rep, targets=tuple(targets_of[base]))
        for base, (depth, rep) in best.items()
    ]
    entries.sort(key=lambda e: -e.depth)
    return entries


def group_tiers(plan: Sequence[BuildPlanEntry]) -> List[Tier]:
    """Batch plan entries by depth, deepest tier first."""

    ordered = sorted(plan, key=lambda e: -e.depth)
    return [
        Tier(depth=depth, entries=tuple(group))
        for depth, group in itertools.groupby(ordered, key=lambda e: e.depth)
    ]


class Installer:
    """Drives resolve -> confirm -> (build, audit, install) per tier."""

    def __init__(
        self,
        *,
        layout: ProjectLayout,
        metadata: MetadataSource,
        system: SystemManager,
        reviewer: Reviewer,
        builder: Builder,
        auditor,
        reader: LineReader,
        console: Optional[Console] = None,
        audit_log=None,
    ) -> None:
        self.layout = layout
        self.metadata = metadata
        self.system = system
        self.reviewer = reviewer
        self.builder = builder
        self.auditor = auditor
        self.reader = reader
        self.console = console or Console(stderr=True)
        self.audit_log = audit_log or NullAuditLogger()
        self.phase: Optional[RunPhase] = None
        self.phases: List[Tuple[RunPhase, Optional[int]]] = []

    @classmethod
    def from_config(
        cls,
        cfg: AurgateConfig,
        *,
        reader: Optional[LineReader] = None,
        console: Optional[Console] = None,
        dry_run: bool = False,
    ) -> "Installer":
        layout = ProjectLayout.from_config(cfg)
        reader = reader or StdinLineReader()
        console = console or Console(stderr=True)
        audit_log = AuditLogger(path=cfg.audit_log_path)
        return cls(
            layout=layout,
            metadata=AurRpcClient(AurRpcConfig(rpc_url=cfg.aur_rpc_url, timeout_s=cfg.rpc_timeout_s)),
            system=Pacman(sudo=cfg.sudo, dry_run=dry_run),
            reviewer=GitRecipeReviewer(
                layout=layout,
                git_url=cfg.aur_git_url,
                reader=reader,
                console=console,
                shell=cfg.shell,
                audit_log=audit_log,
            ),
            builder=BwrapBuilder(bwrap=cfg.bwrap, makepkg_args=cfg.makepkg_args, dry_run=dry_run),
            auditor=ArchiveAuditor(reader=reader, console=console, shell=cfg.shell, audit_log=audit_log),
            reader=reader,
            console=console,
            audit_log=audit_log,
        )

    def _enter(self, phase: RunPhase, depth: Optional[int] = None) -> None:
        self.phase = phase
        self.phases.append((phase, depth))
        if depth is None:
            logger.info("Phase %s", phase.value)
        else:
            logger.info("Phase %s (depth %d)", phase.value, depth)

    def install(self, targets: Sequence[str], *, offline: bool = False, as_dependency: bool = False) -> List[Tier]:
        try:
            self._enter(RunPhase.RESOLVING)
            resolution = resolve(targets, self.metadata, self.system)
            resolution.require_complete()
            self.audit_log.log(
                audit_event(
                    action="resolved",
                    ok=True,
                    details={"targets": list(targets), "depths": resolution.depths, "system": resolution.system_deps},
                )
            )

            self._enter(RunPhase.CONFIRMING)
            plan = plan_builds(resolution)
            self.confirm(resolution.system_deps, plan)

            for pkgbase in _unique(r.package_base for r in resolution.records.values()):
                self.reviewer.review(pkgbase)
            self.system.install_system(resolution.system_deps)

            tiers = group_tiers(plan)
            versions = resolution.versions()
            for tier in tiers:
                self.run_tier(tier, versions, offline=offline, as_dependency=as_dependency)
        except BaseException:
            self._enter(RunPhase.ABORTED)
            raise

        self._enter(RunPhase.DONE)
        return tiers

    def confirm(self, system_deps: Sequence[str], plan: Sequence[BuildPlanEntry]) -> None:
        c = self.console
        c.print()
        c.print("In order to install all targets, the following pacman packages will need to be installed:")
        for dep in system_deps:
            c.print(f"  {dep}", markup=False, highlight=False)
        c.print("And the following AUR packages will need to be built and installed:")
        for entry in sorted(plan, key=lambda e: -e.depth):
            c.print(f"  {entry.pkgbase} (depth {entry.depth})", markup=False, highlight=False)
        c.print()

        menu = Menu(
            [MenuOption("o", "ok", MenuState.APPROVED)],
            reader=self.reader,
            console=c,
            suffix="Ctrl-C=abort. ",
        )
        menu.run()
        self.audit_log.log(
            audit_event(action="install_confirmed", ok=True, details={"pkgbases": [e.pkgbase for e in plan]})
        )

    def prepare_build_dir(self, pkgbase: str) -> Path:
        """Fresh copy of the reviewed recipe, without version-control metadata."""

        build_dir = self.layout.build_dir(pkgbase)
        rm_rf(build_dir)
        copy_tree(self.layout.review_dir(pkgbase), build_dir)
        rm_rf(build_dir / ".git")
        return build_dir

    def run_tier(self, tier: Tier, versions: Dict[str, str], *, offline: bool, as_dependency: bool) -> None:
        self._enter(RunPhase.BUILDING, tier.depth)
        for entry in tier.entries:
            build_dir = self.prepare_build_dir(entry.pkgbase)
            self.builder.build(build_dir, offline=offline)

        self._enter(RunPhase.AUDITING, tier.depth)
        for entry in tier.entries:
            whitelist = archive_whitelist({t: versions[t] for t in entry.targets})
            logger.debug("Expected archive files for %s: %s", entry.pkgbase, whitelist)
            check_and_move(entry.pkgbase, self.layout, whitelist, self.auditor, self.audit_log)

        self._enter(RunPhase.INSTALLING, tier.depth)
        # Every archive of a package-base is bound to one representative
        # target name; the name is only used for reporting.
        files: List[Tuple[str, Path]] = []
        for entry in tier.entries:
            checked = StagingArea(self.layout.checked_dir(entry.pkgbase))
            files.extend((entry.representative, p) for p in checked.files())

        mark_as_dependency = as_dependency or tier.depth > 0
        self.system.install_local(files, as_dependency=mark_as_dependency)
        self.audit_log.log(
            audit_event(
                action="tier_installed",
                ok=True,
                details={
                    "depth": tier.depth,
                    "pkgbases": tier.pkgbases,
                    "files": [str(p) for _name, p in files],
                    "asdeps": mark_as_dependency,
                },
            )
        )


def _unique(items) -> List[str]:
    out: List[str] = []
    for i in items:
        if i not in out:
            out.append(i)
    return out


def install(
    targets: Sequence[str],
    *,
    offline: bool = False,
    as_dependency: bool = False,
    cfg: Optional[AurgateConfig] = None,
    dry_run: bool = False,
) -> List[Tier]:
    installer = Installer.from_config(cfg or AurgateConfig(), dry_run=dry_run)
    return installer.install(targets, offline=offline, as_dependency=as_dependency)
