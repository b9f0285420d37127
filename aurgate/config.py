from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

DEFAULT_AUR_RPC_URL = "https://aur.archlinux.org/rpc/"
DEFAULT_AUR_GIT_URL = "https://aur.archlinux.org"


def default_config_path() -> Path:
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(config_home) / "aurgate" / "config.yaml"


def _xdg(var: str, fallback: str) -> Path:
    return Path(os.environ.get(var) or str(Path.home() / fallback)) / "aurgate"


@dataclass(frozen=True)
class AurgateConfig:
    raw: Dict[str, Any] = field(default_factory=dict)

    def _section(self, name: str) -> Dict[str, Any]:
        return self.raw.get(name) or {}

    @property
    def aur_rpc_url(self) -> str:
        return str(self._section("aur").get("rpc_url") or DEFAULT_AUR_RPC_URL)

    @property
    def aur_git_url(self) -> str:
        return str(self._section("aur").get("git_url") or DEFAULT_AUR_GIT_URL).rstrip("/")

    @property
    def rpc_timeout_s(self) -> float:
        return float(self._section("aur").get("timeout_s") or 30.0)

    @property
    def sudo(self) -> List[str]:
        value = self._section("commands").get("sudo", ["sudo"])
        if isinstance(value, str):
            return value.split()
        return [str(v) for v in (value or [])]

    @property
    def shell(self) -> str:
        return str(self._section("commands").get("shell") or os.environ.get("SHELL") or "bash")

    @property
    def bwrap(self) -> str:
        return str(self._section("commands").get("bwrap") or "bwrap")

    @property
    def makepkg_args(self) -> List[str]:
        return [str(a) for a in (self._section("build").get("makepkg_args") or [])]

    @property
    def offline(self) -> bool:
        return bool(self._section("build").get("offline", False))

    @property
    def data_dir(self) -> Path:
        value = self._section("paths").get("data_dir")
        return Path(value).expanduser() if value else _xdg("XDG_DATA_HOME", ".local/share")

    @property
    def cache_dir(self) -> Path:
        value = self._section("paths").get("cache_dir")
        return Path(value).expanduser() if value else _xdg("XDG_CACHE_HOME", ".cache")

    @property
    def log_path(self) -> Path:
        value = self._section("paths").get("log")
        return Path(value).expanduser() if value else _xdg("XDG_STATE_HOME", ".local/state") / "aurgate.log"

    @property
    def audit_log_path(self) -> Path:
        value = self._section("paths").get("audit_log")
        return Path(value).expanduser() if value else self.data_dir / "audit.jsonl"


def load_config(path: Optional[str] = None) -> AurgateConfig:
    """Load the YAML config.

    An explicitly given path must exist; the default location is optional.
    """

    if path is None:
        p = default_config_path()
        if not p.exists():
            return AurgateConfig()
    else:
        p = Path(path).expanduser()
        if not p.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

    if p.suffix.lower() not in {".yaml", ".yml"}:
        raise ValueError("aurgate config must be YAML")

    import yaml

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"{p} is not valid YAML ({e})") from e
    if not isinstance(raw, dict):
        raise ValueError(f"{p} must contain a mapping/object")

    return AurgateConfig(raw=raw)
