"""Recursive dependency resolution against the AUR.

Starting from the requested roots, every record's depends, makedepends and
checkdepends are classified:

- already installed on the system: ignored
- installable from the system repositories: collected as a system dependency
- anything else: a source-build target, looked up upstream in the next batch

Depth is the longest distance from any requested root, so a target reached
by several paths sits at its deepest position and is built before everything
that needs it.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Protocol, Sequence

from .errors import PackagesNotFound, ResolutionFailure
from .lib.aur_rpc import AurRpcError, MetadataRecord

logger = logging.getLogger(__name__)

# The AUR caps the number of names accepted by one info request.
BATCH_SIZE = 200

_CONSTRAINT = re.compile(r"[<>=]")


class MetadataSource(Protocol):
    def info(self, names: Sequence[str]) -> Mapping[str, MetadataRecord]:
        ...


class SystemPackages(Protocol):
    def is_installed(self, dep: str) -> bool:
        ...

    def is_installable(self, dep: str) -> bool:
        ...


def clean_dependency_name(dep: str) -> str:
    """``"python>=3.11"`` -> ``"python"``."""

    return _CONSTRAINT.split(dep, maxsplit=1)[0].strip()


@dataclass
class Resolution:
    roots: List[str]
    records: Dict[str, MetadataRecord] = field(default_factory=dict)
    system_deps: List[str] = field(default_factory=list)
    depths: Dict[str, int] = field(default_factory=dict)
    missing: List[str] = field(default_factory=list)
    edges: Dict[str, List[str]] = field(default_factory=dict)

    def require_complete(self) -> None:
        if self.missing:
            raise PackagesNotFound(self.missing)

    def pkgbase_of(self) -> Dict[str, str]:
        return {name: r.package_base for name, r in self.records.items()}

    def versions(self) -> Dict[str, str]:
        return {name: r.version for name, r in self.records.items()}


def _dedup(names: Iterable[str]) -> List[str]:
    out: List[str] = []
    for n in names:
        if n not in out:
            out.append(n)
    return out


def compute_depths(roots: Sequence[str], edges: Mapping[str, Sequence[str]]) -> Dict[str, int]:
    """Longest distance from any root for every reachable node.

    Raises ResolutionFailure if the graph has a cycle reachable from a root.
    """

    depths: Dict[str, int] = {r: 0 for r in roots}
    nodes = set(roots) | set(edges)
    for children in edges.values():
        nodes.update(children)

    for _ in range(len(nodes) + 1):
        changed = False
        for parent, children in edges.items():
            if parent not in depths:
                continue
            d = depths[parent] + 1
            for child in children:
                if depths.get(child, -1) < d:
                    depths[child] = d
                    changed = True
        if not changed:
            return depths

    deepest = sorted(depths, key=lambda n: -depths[n])[:5]
    raise ResolutionFailure(f"Dependency cycle detected involving: {', '.join(deepest)}")


def resolve(
    targets: Sequence[str],
    metadata: MetadataSource,
    system: SystemPackages,
    *,
    batch_size: int = BATCH_SIZE,
) -> Resolution:
    roots = _dedup(targets)
    res = Resolution(roots=roots)

    seen = set(roots)
    queue: List[str] = list(roots)
    # dep name -> "installed" | "system"
    classified: Dict[str, str] = {}

    while queue:
        batch, queue = queue[:batch_size], queue[batch_size:]
        try:
            found = metadata.info(batch)
        except AurRpcError as e:
            raise ResolutionFailure(f"Failed to fetch info from AUR, {e}") from e
        if not isinstance(found, Mapping):
            raise ResolutionFailure(f"Metadata source returned {type(found).__name__}, expected a mapping")

        for name in batch:
            record = found.get(name)
            if record is None:
                res.missing.append(name)
                continue
            res.records[name] = record
            children = res.edges.setdefault(name, [])

            for raw in record.all_depends:
                dep = clean_dependency_name(raw)
                if not dep or dep == name:
                    continue
                if dep in seen:
                    if dep not in children:
                        children.append(dep)
                    continue
                if dep not in classified:
                    if system.is_installed(dep):
                        classified[dep] = "installed"
                    elif system.is_installable(dep):
                        classified[dep] = "system"
                        res.system_deps.append(dep)
                    else:
                        classified[dep] = "source"
                if classified[dep] != "source":
                    continue
                seen.add(dep)
                queue.append(dep)
                children.append(dep)

    res.depths = compute_depths(roots, res.edges)
    logger.info(
        "Resolved %d source targets, %d system dependencies, %d missing",
        len(res.records),
        len(res.system_deps),
        len(res.missing),
    )
    for name in sorted(res.depths, key=lambda n: (-res.depths[n], n)):
        logger.debug("depth %d: %s", res.depths[name], name)
    return res
