"""Guards and destructive-op refusals."""

from __future__ import annotations

import os

from .executil import run


def _pkname(path: str) -> str:
    r = run(["lsblk", "-no", "PKNAME", path], check=False)
    lines = (r.out or "").strip().splitlines()
    return lines[0].strip() if lines else ""


def _source_of(mountpoint: str) -> str:
    r = run(["findmnt", "-no", "SOURCE", mountpoint], check=False)
    return (r.out or "").strip()


def guard_not_live_disk(device: str) -> tuple[bool, str]:
    """
    Refuse when the target looks like the disk the live system runs from.
    Returns (ok, reason).
    """

    live = []
    for mountpoint in ("/", "/run/archiso/bootmnt"):
        src = _source_of(mountpoint)
        if not src or not src.startswith("/dev/"):
            continue
        live.append(_pkname(src) or os.path.basename(src))
    devname = os.path.basename(device.rstrip("/"))
    for name in live:
        if name and name == devname:
            return False, f"Target {device} looks like the live installation medium ({name})."
    return True, ""

