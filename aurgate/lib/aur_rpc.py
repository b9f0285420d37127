"""AUR RPC client (small, dependency-free).

Targets the v5 ``info`` endpoint:
  GET {rpc_url}?v=5&type=info&arg[]=name1&arg[]=name2

Names the AUR does not know are simply absent from the result; only
transport errors and malformed payloads are errors.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

logger = logging.getLogger(__name__)


class AurRpcError(RuntimeError):
    pass


@dataclass(frozen=True)
class MetadataRecord:
    name: str
    package_base: str
    version: str
    depends: Tuple[str, ...] = field(default_factory=tuple)
    make_depends: Tuple[str, ...] = field(default_factory=tuple)
    check_depends: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def all_depends(self) -> Tuple[str, ...]:
        return self.depends + self.make_depends + self.check_depends

    @classmethod
    def from_rpc(cls, obj: Dict[str, Any]) -> "MetadataRecord":
        try:
            name = obj["Name"]
            return cls(
                name=str(name),
                package_base=str(obj.get("PackageBase") or name),
                version=str(obj["Version"]),
                depends=tuple(str(d) for d in obj.get("Depends") or ()),
                make_depends=tuple(str(d) for d in obj.get("MakeDepends") or ()),
                check_depends=tuple(str(d) for d in obj.get("CheckDepends") or ()),
            )
        except (KeyError, TypeError) as e:
            raise AurRpcError(f"Malformed AUR package record: {obj!r}") from e


@dataclass(frozen=True)
class AurRpcConfig:
    rpc_url: str
    timeout_s: float = 30.0


class AurRpcClient:
    """Minimal AUR metadata client."""

    def __init__(self, cfg: AurRpcConfig) -> None:
        self._cfg = cfg

    def _url(self, names: Sequence[str]) -> str:
        query: List[Tuple[str, str]] = [("v", "5"), ("type", "info")]
        query.extend(("arg[]", n) for n in names)
        return f"{self._cfg.rpc_url}?{urlencode(query)}"

    def info(self, names: Sequence[str]) -> Dict[str, MetadataRecord]:
        if not names:
            return {}
        url = self._url(names)
        logger.debug("Fetching AUR info for %s", ", ".join(names))
        req = Request(url, headers={"Accept": "application/json"})
        try:
            with urlopen(req, timeout=self._cfg.timeout_s) as resp:
                raw = resp.read()
        except HTTPError as e:
            raise AurRpcError(f"AUR RPC returned HTTP {e.code} for {url}") from e
        except (URLError, OSError) as e:
            raise AurRpcError(f"AUR RPC unreachable ({e})") from e

        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise AurRpcError(f"AUR RPC returned invalid JSON ({e})") from e
        return parse_info_payload(payload)


def parse_info_payload(payload: Any) -> Dict[str, MetadataRecord]:
    if not isinstance(payload, dict):
        raise AurRpcError(f"AUR RPC payload must be an object, got {type(payload).__name__}")
    if payload.get("type") == "error":
        raise AurRpcError(f"AUR RPC error: {payload.get('error')}")
    results = payload.get("results")
    if not isinstance(results, list):
        raise AurRpcError("AUR RPC payload has no results list")
    out: Dict[str, MetadataRecord] = {}
    for obj in results:
        if not isinstance(obj, dict):
            raise AurRpcError(f"Malformed AUR package record: {obj!r}")
        record = MetadataRecord.from_rpc(obj)
        out[record.name] = record
    return out
