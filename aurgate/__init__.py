"""aurgate: build community recipes, audit their archives, then install.

Core design goals:
- Resolve the full source-build dependency set before anything runs
- Build every recipe exactly once, deepest dependencies first
- Confined builds, fresh working directories per run
- Human audit of every archive before the privileged install
- Fail-stop: no retries, no partial tiers
"""

__all__ = []
