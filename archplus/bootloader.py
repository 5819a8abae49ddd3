"""GRUB: theme, install, signing, fallback loader and the UEFI entry."""
from __future__ import annotations

import os
import shutil
import tempfile

from . import console, devices
from .boot_plumbing import grub_defaults, update_grub_defaults
from .errors import AdvisoryError, ExternalCommandError, PreconditionError
from .executil import run
from .luks import luks_uuid
from .model import Context
from .paths import in_target, theme_base_url
from .secureboot import GRUB_EFI, KEY_DIR

FALLBACK_EFI = "/efi/EFI/Boot/BOOTX64.EFI"
GRUB_CFG = "/boot/grub/grub.cfg"
BOOT_LABEL = "ArchLinuxPlus"
LOADER_PATH = "\\EFI\\GRUB\\grubx64.efi"
GRUB_MODULES = (
    "part_gpt part_msdos fat ext2 normal efi_gop efi_uga gfxterm gfxmenu all_video boot linux "
    "configfile search search_fs_uuid search_label search_fs_file cryptodisk luks"
)


def grub_install_command(mnt: str, in_vm: bool) -> list[str]:
    cmd = [
        "arch-chroot", mnt, "grub-install",
        "--target=x86_64-efi",
        "--efi-directory=/efi",
        "--bootloader-id=GRUB",
    ]
    if in_vm:
        cmd.append("--no-nvram")
    cmd += [f"--modules={GRUB_MODULES}", "--recheck"]
    return cmd


def sign_command(mnt: str, target: str = GRUB_EFI) -> list[str]:
    return [
        "arch-chroot", mnt, "sbsign",
        "--key", f"{KEY_DIR}/db.key",
        "--cert", f"{KEY_DIR}/db.crt",
        "--output", target, target,
    ]


def install_theme(ctx: Context) -> bool:
    theme = ctx.config.grub_theme
    dest = in_target(ctx.mnt, f"/boot/grub/themes/{theme.directory}")
    os.makedirs(dest, exist_ok=True)
    url = f"{theme_base_url()}/{theme.archive}"
    console.info_print(f"Downloading and installing GRUB theme: {theme.directory}")
    with tempfile.TemporaryDirectory(prefix="archplus-theme-") as tmp:
        archive = os.path.join(tmp, theme.archive)
        res = run(["curl", "-sSL", url, "-o", archive], check=False, dry_run=ctx.dry_run, timeout=120.0)
        if res.rc != 0:
            return False
        res = run(["bsdtar", "-xf", archive, "-C", dest], check=False, dry_run=ctx.dry_run, timeout=120.0)
        if res.rc != 0:
            return False
    console.startup_ok(f"GRUB theme extracted to /boot/grub/themes/{theme.directory}")
    return True


def copy_fallback(mnt: str, dry_run: bool = False) -> bool:
    src = in_target(mnt, GRUB_EFI)
    dst = in_target(mnt, FALLBACK_EFI)
    if dry_run:
        return True
    if not os.path.isfile(src):
        return False
    os.makedirs(os.path.dirname(dst), exist_ok=True)
    shutil.copy2(src, dst)
    return os.path.isfile(dst)


def grub_mkconfig(mnt: str, dry_run: bool = False) -> bool:
    res = run(["arch-chroot", mnt, "grub-mkconfig", "-o", GRUB_CFG], check=False, dry_run=dry_run)
    return res.rc == 0


def setup_grub_bootloader(ctx: Context):
    console.section_header("GRUB Bootloader Installation and Theme Setup")
    warnings = []
    if not install_theme(ctx):
        console.warning_print("Failed to download GRUB theme. Skipping theme installation.")
        warnings.append("GRUB theme not installed")

    console.info_print("Configuring /etc/default/grub...")
    uuid = luks_uuid(ctx.config.root_partition, dry_run=ctx.dry_run)
    if uuid:
        console.startup_ok("GRUB_CMDLINE_LINUX carries cryptdevice= and rd.luks.name= for the root mapping.")
    else:
        console.warning_print("Could not detect LUKS UUID. GRUB_CMDLINE_LINUX not updated!")
        warnings.append("LUKS UUID unavailable")
    update_grub_defaults(ctx.mnt, grub_defaults(ctx.config.grub_theme, uuid))

    console.info_print("Installing GRUB bootloader with LUKS support...")
    cmd = grub_install_command(ctx.mnt, devices.is_virtual_machine())
    res = run(cmd, check=False, dry_run=ctx.dry_run)
    if res.rc != 0:
        raise ExternalCommandError("GRUB install failed!", cmd[:3], res.rc)
    console.startup_ok("GRUB bootloader installed successfully with LUKS support.")

    if run(sign_command(ctx.mnt), check=False, dry_run=ctx.dry_run).rc == 0:
        console.startup_ok("grubx64.efi signed.")
    else:
        console.warning_print("Failed to sign grubx64.efi")
        warnings.append("grubx64.efi not signed")

    if copy_fallback(ctx.mnt, dry_run=ctx.dry_run):
        console.startup_ok("Fallback BOOTX64.EFI updated.")
    else:
        console.warning_print("Fallback BOOTX64.EFI was not created.")
        warnings.append("fallback loader missing")

    console.info_print("Generating grub.cfg...")
    if not grub_mkconfig(ctx.mnt, dry_run=ctx.dry_run):
        raise ExternalCommandError("Failed to generate grub.cfg!", ["grub-mkconfig", "-o", GRUB_CFG])
    console.startup_ok("grub.cfg generated.")

    if warnings:
        raise AdvisoryError("GRUB installed with warnings: " + "; ".join(warnings))
    console.startup_ok("GRUB setup complete. LUKS is unlocked in GRUB, no double prompt.")


def setup_boot_targets(ctx: Context):
    console.section_header("Final Bootloader Targets (Fallback + UEFI Boot Entry)")
    if not copy_fallback(ctx.mnt, dry_run=ctx.dry_run):
        raise PreconditionError(f"grubx64.efi not found at {in_target(ctx.mnt, GRUB_EFI)}")
    console.startup_ok("Fallback BOOTX64.EFI now points to GRUB.")

    if devices.is_virtual_machine():
        console.info_print("Virtual machine detected, skipping efibootmgr UEFI boot entry registration.")
        return

    disk = devices.parent_disk(ctx.config.root_partition) or ctx.config.disk
    partnum = devices.partition_number(ctx.config.efi_partition) or "1"
    cmd = [
        "arch-chroot", ctx.mnt, "efibootmgr",
        "--disk", disk, "--part", partnum,
        "--create", "--label", BOOT_LABEL, "--loader", LOADER_PATH,
    ]
    if run(cmd, check=False, dry_run=ctx.dry_run).rc != 0:
        raise AdvisoryError("Failed to register UEFI boot entry. Fallback BOOTX64.EFI should still work.")
    console.startup_ok(f"UEFI boot entry '{BOOT_LABEL}' registered successfully.")
