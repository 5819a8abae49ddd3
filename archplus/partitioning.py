"""Disk wipe and GPT layout (ESP + root [+ home])."""
from __future__ import annotations

import time

from . import console
from .devices import partition_path
from .errors import ExternalCommandError
from .executil import run, udev_settle
from .model import Context, DiskMap

ESP_END_MIB = 513


def wipe_disk(ctx: Context):
    console.section_header("Disk Wipe")
    disk = ctx.config.disk
    if ctx.config.secure_wipe:
        console.warning_print(f"Securely wiping {disk}. This may take a long time...")
        # dd exits non-zero with "No space left on device" once the disk is full
        res = run(["dd", "if=/dev/urandom", f"of={disk}", "bs=1M", "status=progress"],
                  check=False, dry_run=ctx.dry_run)
        if res.rc != 0 and "No space left on device" not in (res.err or ""):
            raise ExternalCommandError("Secure wipe failed!", ["dd"], res.rc)
    else:
        console.info_print(f"Quickly zapping partition table on {disk}.")
        res = run(["sgdisk", "--zap-all", disk], check=False, dry_run=ctx.dry_run, timeout=120.0)
        if res.rc != 0:
            raise ExternalCommandError("Quick wipe failed!", ["sgdisk", "--zap-all", disk], res.rc)
    console.startup_ok("Disk wipe completed.")


def reread(disk: str, dry_run: bool = False):
    run(["partprobe", disk], check=False, dry_run=dry_run)
    udev_settle(dry_run=dry_run)
    if not dry_run:
        time.sleep(2)


def layout_commands(disk: str, separate_home: bool, root_size_gib: int | None) -> list[list[str]]:
    """Return the parted invocations for the requested layout."""

    cmds = [
        ["parted", "--script", disk, "mklabel", "gpt"],
        ["parted", "--script", disk,
         "mkpart", "primary", "fat32", "1MiB", f"{ESP_END_MIB}MiB",
         "set", "1", "esp", "on"],
    ]
    if separate_home:
        root_end = ESP_END_MIB + int(root_size_gib or 0) * 1024
        cmds.append(["parted", "--script", disk, "mkpart", "primary", f"{ESP_END_MIB}MiB", f"{root_end}MiB"])
        cmds.append(["parted", "--script", disk, "mkpart", "primary", f"{root_end}MiB", "100%"])
    else:
        cmds.append(["parted", "--script", disk, "mkpart", "primary", f"{ESP_END_MIB}MiB", "100%"])
    return cmds


def disk_map(disk: str, separate_home: bool) -> DiskMap:
    return DiskMap(
        disk=disk,
        efi=partition_path(disk, 1),
        root=partition_path(disk, 2),
        home=partition_path(disk, 3) if separate_home else None,
    )


def partition_disk(ctx: Context):
    console.section_header("Disk Partitioning")
    cfg = ctx.config
    console.info_print(f"Creating GPT partition layout on {cfg.disk}.")
    for cmd in layout_commands(cfg.disk, cfg.separate_home, cfg.root_size_gib):
        res = run(cmd, check=False, dry_run=ctx.dry_run, timeout=60.0)
        if res.rc != 0:
            raise ExternalCommandError(f"Partitioning failed: {' '.join(cmd[3:])}", cmd, res.rc)
    reread(cfg.disk, dry_run=ctx.dry_run)

    dm = disk_map(cfg.disk, cfg.separate_home)
    cfg.efi_partition = dm.efi
    cfg.root_partition = dm.root
    cfg.home_partition = dm.home
    verify_layout(cfg.disk, dm, dry_run=ctx.dry_run)
    console.startup_ok("Disk partitioning completed.")


def verify_layout(disk: str, dm: DiskMap, dry_run: bool = False):
    if dry_run:
        return
    res = run(["lsblk", "-lnpo", "NAME", disk], check=False)
    present = {line.strip() for line in (res.out or "").splitlines()}
    for part in (dm.efi, dm.root, dm.home):
        if part and part not in present:
            raise ExternalCommandError(f"partitioning: {part} did not appear after partprobe", ["lsblk"], res.rc)
