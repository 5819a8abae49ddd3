"""Snapper snapshots, grub-btrfs and the systemd services of the installed system."""

from __future__ import annotations

import os

from . import console
from .bootloader import grub_mkconfig
from .btrfs import mount_snapshots
from .errors import AdvisoryError, ExternalCommandError
from .executil import run
from .files import read_text, set_assignment, write_file
from .model import Context
from .paths import in_target

GRUB_BTRFS_CONFIG = "/etc/default/grub-btrfs/config"
ZRAM_SERVICE = "systemd-zram-setup@zram0.service"


def configure_grub_btrfs(mnt: str) -> str:
    path = in_target(mnt, GRUB_BTRFS_CONFIG)
    write_file(path, set_assignment(read_text(path), "GRUB_BTRFS_GRUB_DIRNAME", '"/boot/grub"'))
    return path


def setup_snapper(ctx: Context):
    console.section_header("Snapper Setup for Root Filesystem")
    mnt = ctx.mnt
    warnings = []

    console.info_print("Creating Snapper config for root...")
    cmd = ["arch-chroot", mnt, "snapper", "--no-dbus", "--config", "root", "create-config", "/"]
    res = run(cmd, check=False, dry_run=ctx.dry_run)
    if res.rc != 0:
        raise ExternalCommandError("Snapper config creation failed", cmd, res.rc)
    console.startup_ok("Snapper config created successfully")

    if mount_snapshots(mnt, dry_run=ctx.dry_run):
        console.startup_ok("Mounted .snapshots subvolume")
    else:
        console.warning_print("Failed to remount .snapshots, Snapper may still function")
        warnings.append(".snapshots not mounted")

    res = run(["arch-chroot", mnt, "systemctl", "enable", "snapper-timeline.timer", "snapper-cleanup.timer"],
              check=False, dry_run=ctx.dry_run)
    if res.rc == 0:
        console.startup_ok("Enabled snapper-timeline.timer and snapper-cleanup.timer")
    else:
        console.warning_print("Failed to enable Snapper timer services")
        warnings.append("snapper timers not enabled")

    res = run(["arch-chroot", mnt, "snapper", "--no-dbus", "create", "--description", "Initial system state"],
              check=False, dry_run=ctx.dry_run)
    if res.rc == 0:
        console.startup_ok("Initial snapshot created")
    else:
        console.warning_print("Failed to create initial snapshot")
        warnings.append("no initial snapshot")

    configure_grub_btrfs(mnt)
    console.startup_ok("grub-btrfs configured for GRUB snapshot menu support")

    console.info_print("Updating grub.cfg to include snapshot menu...")
    if grub_mkconfig(mnt, dry_run=ctx.dry_run):
        console.startup_ok("grub.cfg updated with snapshots")
    else:
        console.warning_print("Failed to update grub.cfg with snapshots")
        warnings.append("grub.cfg not regenerated")

    if warnings:
        raise AdvisoryError("Snapper configured with warnings: " + "; ".join(warnings))


def services_to_enable(ctx: Context) -> list[str]:
    services = list(ctx.config.network.services)
    if os.path.isfile(in_target(ctx.mnt, "/etc/systemd/zram-generator.conf")):
        services.append(ZRAM_SERVICE)
    if os.path.isdir(in_target(ctx.mnt, "/.snapshots")):
        services.append("snapper-cleanup.timer")
    return services


def enable_services(ctx: Context):
    console.section_header("Enabling Systemd Services")
    if not ctx.config.network.services:
        console.warning_print("No network service to enable; configure networking manually.")
    failed = []
    for unit in services_to_enable(ctx):
        console.info_print(f"Enabling {unit}...")
        res = run(["arch-chroot", ctx.mnt, "systemctl", "enable", unit], check=False, dry_run=ctx.dry_run)
        if res.rc != 0:
            failed.append(unit)
    if failed:
        raise AdvisoryError(f"Could not enable: {', '.join(failed)}")
    console.startup_ok("Relevant services enabled.")
