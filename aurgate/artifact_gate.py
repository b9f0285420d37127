from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Mapping, Protocol

from .audit_log import NullAuditLogger, audit_event
from .errors import NoArtifacts, WorkdirError
from .layout import ProjectLayout
from .lib.fsops import StagingArea

logger = logging.getLogger(__name__)


class Auditor(Protocol):
    def audit(self, path: Path) -> object:
        ...


def archive_whitelist(versions: Mapping[str, str]) -> List[str]:
    return [f"{target}-{version}" for target, version in versions.items()]


def filter_artifacts(build_dir: Path, whitelist: Iterable[str]) -> List[Path]:
    """Files in build_dir whose name starts with a whitelisted prefix.

    Prefix matching tolerates the -<pkgrel>-<arch>.pkg.tar.* tail makepkg adds.
    """

    prefixes = tuple(whitelist)
    try:
        items = sorted(build_dir.iterdir(), key=lambda p: p.name)
    except OSError as e:
        raise WorkdirError(build_dir, f"Failed to read build directory ({e})") from e
    return [p for p in items if p.is_file() and prefixes and p.name.startswith(prefixes)]


def check_and_move(
    pkgbase: str,
    layout: ProjectLayout,
    whitelist: Iterable[str],
    auditor: Auditor,
    audit_log=None,
) -> List[Path]:
    """Audit every whitelisted artifact of pkgbase, then move them to checked_dir.

    Nothing is moved unless every audit is accepted. The checked directory
    is wiped on every call; the build directory is left in place. A build
    that produced no whitelisted archive raises NoArtifacts.
    """

    audit_log = audit_log or NullAuditLogger()
    whitelist = list(whitelist)
    build_dir = layout.build_dir(pkgbase)
    logger.debug("checking tars for package %s", pkgbase)
    candidates = filter_artifacts(build_dir, whitelist)
    logger.debug("Files filtered for tar checking: %s", [p.name for p in candidates])
    if not candidates:
        raise NoArtifacts(pkgbase, build_dir, whitelist)

    for file in candidates:
        auditor.audit(file)

    logger.debug("all package (tar) files checked, moving them")
    staging = StagingArea.fresh(layout.checked_dir(pkgbase))
    moved = [staging.move_in(f) for f in candidates]
    audit_log.log(
        audit_event(
            action="artifacts_checked",
            ok=True,
            details={"pkgbase": pkgbase, "files": [p.name for p in moved]},
        )
    )
    return moved
