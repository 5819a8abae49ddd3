from __future__ import annotations

import os
from pathlib import Path

_DEFAULT_MNT = "/mnt"
_DEFAULT_LOG = "/var/log/archinstall.log"
_DEFAULT_CONFIG_BASE = "https://raw.githubusercontent.com/NeonGOD78/ArchLinuxPlus/refs/heads/main/configs"
_DEFAULT_THEME_BASE = "https://github.com/NeonGOD78/ArchLinuxPlus/raw/main/configs/boot/grub/themes"

LOG_NAME = "archinstall.log"


def _expand(path: str) -> str:
    candidate = Path(path).expanduser()
    try:
        return str(candidate.resolve())
    except FileNotFoundError:
        return str(candidate)


def mount_root() -> str:
    """Return the mount root of the target tree.

    The location can be overridden via the ``ARCHPLUS_MNT`` environment
    variable, which is mostly useful for dry runs against a scratch
    directory.
    """

    override = os.environ.get("ARCHPLUS_MNT")
    if override:
        return _expand(override)
    return _DEFAULT_MNT


def initial_log_path() -> str:
    override = os.environ.get("ARCHPLUS_LOG")
    if override:
        return _expand(override)
    return _DEFAULT_LOG


def target_log_path(mnt: str) -> str:
    return str(Path(mnt) / "var" / "log" / LOG_NAME)


def config_base_url() -> str:
    return os.environ.get("ARCHPLUS_CONFIG_BASE", _DEFAULT_CONFIG_BASE).rstrip("/")


def theme_base_url() -> str:
    return os.environ.get("ARCHPLUS_THEME_BASE", _DEFAULT_THEME_BASE).rstrip("/")


def in_target(mnt: str, path: str) -> str:
    """Map an absolute path inside the installed system onto the mounted tree."""

    return os.path.join(mnt, path.lstrip("/"))
