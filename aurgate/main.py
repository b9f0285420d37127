from __future__ import annotations

import argparse
import logging
from typing import Optional

from rich.console import Console

from .config import load_config
from .errors import AuditAborted, AurgateError
from .lib.terminal import StdinLineReader
from .logging_utils import configure_logging
from .orchestrator import Installer
from .tar_audit import ArchiveAuditor

logger = logging.getLogger(__name__)


def cmd_install(args: argparse.Namespace) -> int:
    cfg = args.cfg
    installer = Installer.from_config(cfg, dry_run=bool(args.dry_run))
    installer.install(
        args.targets,
        offline=bool(args.offline or cfg.offline),
        as_dependency=bool(args.asdeps),
    )
    return 0


def cmd_tarcheck(args: argparse.Namespace) -> int:
    cfg = args.cfg
    auditor = ArchiveAuditor(reader=StdinLineReader(), shell=cfg.shell)
    for path in args.archives:
        auditor.audit(path)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="aurgate")
    p.add_argument("--config", default=None, help="Path to config.yaml (default: $XDG_CONFIG_HOME/aurgate/config.yaml)")
    p.add_argument("--log", default=None, help="Path to the aurgate log")
    p.add_argument("-v", "--verbose", action="store_true", help="Log debug details")

    sub = p.add_subparsers(dest="subcmd", required=True)

    sp = sub.add_parser("install", help="Build, audit and install AUR packages")
    sp.add_argument("targets", nargs="+", help="Package names to install")
    sp.add_argument("-o", "--offline", action="store_true", help="Forbid network access while building")
    sp.add_argument("--asdeps", action="store_true", help="Install every package as a dependency")
    sp.add_argument("--dry-run", action="store_true", help="Log privileged and build commands without running them")
    sp.set_defaults(func=cmd_install)

    sp = sub.add_parser("tarcheck", help="Audit package archives without installing")
    sp.add_argument("archives", nargs="+", help=".tar or .tar.xz files")
    sp.set_defaults(func=cmd_tarcheck)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    try:
        args.cfg = load_config(args.config)
    except (OSError, ValueError) as e:
        p.error(str(e))
    configure_logging(log_path=args.log or args.cfg.log_path, level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        return int(args.func(args))
    except AurgateError as e:
        logger.info("Aborting: %s", e)
        Console(stderr=True).print(str(e), style="bold red", markup=False, highlight=False, soft_wrap=True)
        return e.exit_code
    except EOFError:
        logger.info("Aborting: operator input closed")
        Console(stderr=True).print("Operator input closed, aborting.", style="bold red")
        return AuditAborted.exit_code
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
