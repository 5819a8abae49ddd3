"""LUKS lifecycle for the root and home partitions."""

from __future__ import annotations

from . import console
from .errors import ExternalCommandError
from .executil import run, udev_settle
from .model import Context

ROOT_MAPPER = "cryptroot"
HOME_MAPPER = "crypthome"


def encrypted_targets(ctx: Context) -> list[tuple[str, str]]:
    cfg = ctx.config
    targets = [(cfg.root_partition, ROOT_MAPPER)]
    if cfg.separate_home:
        targets.append((cfg.home_partition, HOME_MAPPER))
    return targets


def is_luks(part: str, dry_run: bool = False) -> bool:
    if dry_run:
        return False
    return run(["cryptsetup", "isLuks", part], check=False).rc == 0


def wipe_existing_luks_if_any(ctx: Context):
    console.section_header("Wiping Existing LUKS Headers (if any)")
    for part, _name in encrypted_targets(ctx):
        if not is_luks(part, dry_run=ctx.dry_run):
            console.info_print(f"No LUKS header on {part}. Continuing.")
            continue
        console.warning_print(f"Found LUKS header on {part}. Wiping...")
        res = run(["cryptsetup", "luksErase", "-q", part], check=False, dry_run=ctx.dry_run, timeout=120.0)
        if res.rc != 0:
            raise ExternalCommandError(f"Failed to wipe LUKS header on {part}.", ["cryptsetup", "luksErase"], res.rc)
        console.startup_ok(f"LUKS header wiped from {part}.")


def format_luks(part: str, password: str, dry_run: bool = False):
    cmd = ["cryptsetup", "luksFormat", part, "-q", "--type", "luks1", "--key-file", "-"]
    res = run(cmd, check=False, dry_run=dry_run, input=password, timeout=360.0)
    if res.rc != 0:
        raise ExternalCommandError(f"Failed to format {part} with LUKS.", cmd, res.rc)
    udev_settle(dry_run=dry_run)


def open_luks(part: str, name: str, password: str, dry_run: bool = False):
    cmd = ["cryptsetup", "open", part, name, "--key-file", "-"]
    res = run(cmd, check=False, dry_run=dry_run, input=password, timeout=120.0)
    if res.rc != 0:
        raise ExternalCommandError(f"Failed to open LUKS partition {part} as {name}.", cmd, res.rc)
    udev_settle(dry_run=dry_run)


def luks_uuid(part: str, dry_run: bool = False) -> str:
    r = run(["cryptsetup", "luksUUID", part], check=False, dry_run=dry_run)
    if dry_run:
        return "00000000-0000-0000-0000-000000000000"
    return (r.out or "").strip() if r.rc == 0 else ""


def encrypt_partitions(ctx: Context):
    console.section_header("Encrypting Partitions with LUKS1")
    password = ctx.config.luks_password
    for part, name in encrypted_targets(ctx):
        console.info_print(f"Encrypting partition: {part}")
        format_luks(part, password, dry_run=ctx.dry_run)
        open_luks(part, name, password, dry_run=ctx.dry_run)
        console.startup_ok(f"{part} encrypted and opened as /dev/mapper/{name}.")
