from __future__ import annotations

import os
import subprocess

from . import __version__

_SHA_CACHE: dict[str, str | None] = {}


def _git_rev_parse(ref: str) -> str | None:
    if ref in _SHA_CACHE:
        return _SHA_CACHE[ref]
    try:
        proc = subprocess.run(
            ["git", "rev-parse", "--short", ref],
            capture_output=True,
            text=True,
            check=True,
            cwd=os.path.dirname(os.path.abspath(__file__)),
        )
        value = proc.stdout.strip() or None
    except (OSError, subprocess.CalledProcessError):
        value = None
    _SHA_CACHE[ref] = value
    return value


def version_string() -> str:
    commit = _git_rev_parse("HEAD")
    return f"v{__version__} (commit: {commit or 'unknown'})"
