"""Gentoo autobuilder (Python-first, state-driven).

Core design goals:
- Snapshot configuration before mutating the system, roll back on failure
- Idempotent steps and idempotent config patching
- Every system-mutating call goes through one command runner (dry-run aware)
- Same steps for a fresh install (via chroot) and for a running system
- Centralized logging
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
