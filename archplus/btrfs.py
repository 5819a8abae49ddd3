"""Filesystems, Btrfs subvolumes and the mounted target tree."""
from __future__ import annotations

import os
from subprocess import CalledProcessError

from . import console
from .errors import AdvisoryError, ExternalCommandError
from .executil import run, trace
from .luks import HOME_MAPPER, ROOT_MAPPER
from .model import Context

MOUNT_OPTS = "noatime,compress=zstd"

ROOT_SUBVOLUMES = ("@", "@var", "@srv", "@log", "@cache", "@tmp", "@portables", "@machines")

# (subvolume, mountpoint relative to the mount root); order matters, parents first
SUBVOLUME_MOUNTS = (
    ("@var", "var"),
    ("@log", "var/log"),
    ("@cache", "var/cache"),
    ("@tmp", "var/tmp"),
    ("@portables", "var/lib/portables"),
    ("@machines", "var/lib/machines"),
    ("@srv", "srv"),
)

NOCOW_PATHS = ("var/log", "var/cache", "var/tmp", "var/lib/portables", "var/lib/machines")


def root_mapper() -> str:
    return f"/dev/mapper/{ROOT_MAPPER}"


def home_mapper() -> str:
    return f"/dev/mapper/{HOME_MAPPER}"


def _mkfs(cmd: list[str], what: str, dry_run: bool):
    try:
        run(cmd, check=True, dry_run=dry_run, timeout=600.0)
    except CalledProcessError as exc:
        msg = (exc.stderr or exc.stdout or "").strip() or f"exit status {exc.returncode}"
        raise ExternalCommandError(f"Failed to format {what}: {msg}", cmd, exc.returncode) from exc
    console.startup_ok(f"Formatted {what}.")


def format_filesystems(ctx: Context):
    console.section_header("Formatting Partitions with Btrfs")
    cfg = ctx.config
    _mkfs(["mkfs.fat", "-F32", cfg.efi_partition], "EFI partition as FAT32", ctx.dry_run)
    _mkfs(["mkfs.btrfs", "-f", root_mapper()], "root partition as Btrfs", ctx.dry_run)
    if cfg.separate_home:
        _mkfs(["mkfs.btrfs", "-f", home_mapper()], "home partition as Btrfs", ctx.dry_run)


def _mount(source: str, target: str, options: str | None = None, dry_run: bool = False):
    if not dry_run:
        os.makedirs(target, exist_ok=True)
    cmd = ["mount"]
    if options:
        cmd += ["-o", options]
    cmd += [source, target]
    res = run(cmd, check=False, dry_run=dry_run, timeout=60.0)
    if res.rc != 0:
        raise ExternalCommandError(f"Failed to mount {source} on {target}", cmd, res.rc)


def _umount(target: str, dry_run: bool = False):
    run(["umount", target], check=True, dry_run=dry_run, timeout=60.0)


def _subvolume_create(path: str, dry_run: bool) -> bool:
    res = run(["btrfs", "subvolume", "create", path], check=False, dry_run=dry_run, timeout=60.0)
    if res.rc == 0:
        console.startup_ok(f"Created subvolume {path}")
        return True
    console.warning_print(f"Failed to create subvolume {path}")
    return False


def create_subvolumes(ctx: Context):
    console.section_header("Creating Btrfs Subvolumes")
    mnt = ctx.mnt
    _mount(root_mapper(), mnt, dry_run=ctx.dry_run)
    failed = []
    for subvol in ROOT_SUBVOLUMES:
        if not _subvolume_create(os.path.join(mnt, subvol), ctx.dry_run):
            failed.append(subvol)

    if ctx.config.separate_home:
        home = os.path.join(mnt, "home")
        _mount(home_mapper(), home, dry_run=ctx.dry_run)
        if not _subvolume_create(os.path.join(home, "@home"), ctx.dry_run):
            failed.append("@home")
        _umount(home, dry_run=ctx.dry_run)
    else:
        if not _subvolume_create(os.path.join(mnt, "@home"), ctx.dry_run):
            failed.append("@home")

    _umount(mnt, dry_run=ctx.dry_run)
    if "@" in failed:
        raise ExternalCommandError("Failed to create the root subvolume @", ["btrfs", "subvolume", "create"])
    if failed:
        raise AdvisoryError(f"Some subvolumes could not be created: {', '.join(failed)}")
    console.startup_ok("All Btrfs subvolumes created successfully.")


def mount_plan(mnt: str, separate_home: bool) -> list[tuple[str, str, str]]:
    """Return (source, target, options) in mount order."""

    plan = [(root_mapper(), mnt, f"{MOUNT_OPTS},subvol=@")]
    home_src = home_mapper() if separate_home else root_mapper()
    plan.append((home_src, os.path.join(mnt, "home"), f"{MOUNT_OPTS},subvol=@home"))
    for subvol, rel in SUBVOLUME_MOUNTS:
        plan.append((root_mapper(), os.path.join(mnt, rel), f"{MOUNT_OPTS},subvol={subvol}"))
    return plan


def mount_subvolumes(ctx: Context):
    console.section_header("Mounting Filesystems")
    mnt = ctx.mnt
    plan = mount_plan(mnt, ctx.config.separate_home)
    source, target, options = plan[0]
    _mount(source, target, options, dry_run=ctx.dry_run)
    console.startup_ok(f"Mounted {target} (root @)")

    _mount(ctx.config.efi_partition, os.path.join(mnt, "efi"), dry_run=ctx.dry_run)
    console.startup_ok(f"Mounted EFI partition to {os.path.join(mnt, 'efi')}")

    for source, target, options in plan[1:]:
        _mount(source, target, options, dry_run=ctx.dry_run)
        console.startup_ok(f"Mounted {target}")
    # .snapshots is created and mounted by snapper later
    console.startup_ok("All filesystems mounted successfully.")


def apply_nocow(ctx: Context):
    console.section_header("Applying NoCOW Attributes")
    failed = []
    for rel in NOCOW_PATHS:
        path = os.path.join(ctx.mnt, rel)
        if not ctx.dry_run and not os.path.isdir(path):
            console.warning_print(f"Directory {path} does not exist, skipping NoCOW.")
            failed.append(path)
            continue
        res = run(["chattr", "+C", path], check=False, dry_run=ctx.dry_run)
        if res.rc == 0:
            console.startup_ok(f"NoCOW attribute applied to {path}.")
        else:
            console.warning_print(f"Failed to apply NoCOW to {path}.")
            failed.append(path)
    if failed:
        raise AdvisoryError(f"NoCOW not applied to {len(failed)} path(s)")


def mount_snapshots(mnt: str, dry_run: bool = False) -> bool:
    target = os.path.join(mnt, ".snapshots")
    if not dry_run:
        os.makedirs(target, exist_ok=True)
    if run(["mountpoint", "-q", target], check=False, dry_run=dry_run).rc == 0 and not dry_run:
        run(["umount", target], check=False)
    res = run(["mount", "-o", f"{MOUNT_OPTS},subvol=.snapshots", root_mapper(), target],
              check=False, dry_run=dry_run, timeout=60.0)
    return res.rc == 0


def unmount_all(mnt: str, dry_run: bool = False) -> bool:
    res = run(["umount", "-R", mnt], check=False, dry_run=dry_run, timeout=120.0)
    if res.rc != 0:
        trace(f"btrfs.unmount_all rc={res.rc} err={(res.err or '').strip()}")
    return res.rc == 0
