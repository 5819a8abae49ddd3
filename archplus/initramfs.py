"""Initramfs generation inside the target root."""

from __future__ import annotations

import os
import re

from . import console
from .boot_plumbing import update_mkinitcpio_conf
from .errors import ExternalCommandError, PreconditionError
from .executil import run, trace
from .model import Context
from .paths import in_target

MKINITCPIO_TIMEOUT = None

_VERSION_RX = re.compile(r"^(\d+\.){2}\d+")


def detect_kernel_version(mnt: str) -> str:
    """Return the first ``X.Y.Z...`` directory under <mnt>/lib/modules, or ''."""

    modules = in_target(mnt, "/lib/modules")
    try:
        entries = sorted(os.listdir(modules))
    except FileNotFoundError:
        return ""
    for name in entries:
        if _VERSION_RX.match(name):
            return name
    return ""


def generate_initramfs_with_mkinitcpio(ctx: Context):
    console.section_header("Generating Initramfs with mkinitcpio")
    version = detect_kernel_version(ctx.mnt)
    if not version and not ctx.dry_run:
        raise PreconditionError(
            f"Could not determine kernel version inside target system ({in_target(ctx.mnt, '/lib/modules')})."
        )
    console.info_print(f"Detected kernel version: {version or 'unknown'}")
    trace(f"initramfs kernel={ctx.config.kernel.package} version={version}")

    if ctx.dry_run and not os.path.isfile(in_target(ctx.mnt, "/etc/mkinitcpio.conf")):
        console.info_print("No mkinitcpio.conf in the target tree (dry run); hooks left untouched.")
    else:
        update_mkinitcpio_conf(ctx.mnt)
        console.startup_ok("mkinitcpio hooks updated for encrypted root and Btrfs; compression set to zstd.")

    cmd = ["arch-chroot", ctx.mnt, "mkinitcpio", "-P"]
    res = run(cmd, check=False, dry_run=ctx.dry_run, timeout=MKINITCPIO_TIMEOUT)
    if res.rc != 0:
        raise ExternalCommandError("mkinitcpio failed to generate initramfs!", cmd, res.rc)
    console.startup_ok("Initramfs successfully generated with mkinitcpio.")
