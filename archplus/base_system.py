"""Base system materialization: pacstrap and the first layer of /etc."""

from __future__ import annotations

import os
import re
from pathlib import Path

from . import console, devices
from .errors import AdvisoryError, ExternalCommandError, PreconditionError
from .executil import log_block, relocate_log, run
from .files import append_file, read_text, set_assignment, uncomment, write_file
from .luks import luks_uuid
from .model import Context, InstallConfig
from .paths import in_target

TIMEZONE_URL = "http://ip-api.com/line?fields=timezone"

_EXTRA_PACKAGES = (
    "btrfs-progs", "grub", "grub-btrfs", "rsync", "efibootmgr", "snapper", "reflector", "snap-pac",
    "zram-generator", "sudo", "bash-completion", "inotify-tools", "zsh", "unzip", "unrar", "fzf", "zoxide",
    "colordiff", "curl", "btop", "mc", "git", "systemd", "openssl", "sbsigntools", "base-devel", "go",
    "mkinitcpio", "plymouth",
)

ZRAM_CONF = """[zram0]
zram-size = min(ram, 8192)
compression-algorithm = zstd
"""

TESTING_REPOS = """
[core-testing]
Include = /etc/pacman.d/mirrorlist
Usage = Sync Search

[extra-testing]
Include = /etc/pacman.d/mirrorlist
Usage = Sync Search

[multilib-testing]
Include = /etc/pacman.d/mirrorlist
Usage = Sync Search
"""

YAY_SCRIPT = """#!/bin/bash
set -e
useradd -m aurbuilder
echo "aurbuilder ALL=(ALL) NOPASSWD: ALL" > /etc/sudoers.d/aurbuilder
sudo -u aurbuilder bash -c '
  cd /home/aurbuilder
  git clone https://aur.archlinux.org/yay.git
  cd yay
  makepkg -si --noconfirm
'
userdel -r aurbuilder || true
rm -f /etc/sudoers.d/aurbuilder
"""


def microcode_detector(ctx: Context):
    console.section_header("Microcode Detection")
    pkg, recognised = devices.detect_microcode()
    ctx.config.microcode = pkg
    if not recognised:
        raise AdvisoryError(f"Unknown CPU vendor detected. Defaulting to {pkg}.")
    console.startup_ok(f"Microcode set to: {pkg}")


def base_packages(cfg: InstallConfig) -> list[str]:
    pkgs = ["base", cfg.kernel.package, cfg.microcode or "amd-ucode", "linux-firmware", cfg.kernel.headers]
    pkgs.extend(cfg.network.packages)
    pkgs.extend(_EXTRA_PACKAGES)
    return pkgs


def install_base_system(ctx: Context):
    console.section_header("Base System Installation")
    console.info_print("Installing base system with pacstrap...")
    cmd = ["pacstrap", "-K", ctx.mnt, *base_packages(ctx.config)]
    res = run(cmd, check=False, dry_run=ctx.dry_run)
    if res.rc != 0:
        raise ExternalCommandError("Base system installation failed!", cmd[:3], res.rc)
    console.startup_ok("Base system installed successfully.")


def move_logfile_to_mnt(ctx: Context):
    new_path = relocate_log(ctx.mnt)
    console.startup_ok(f"Logfile moved to {new_path}")


def gen_fstab(ctx: Context):
    console.info_print("Generating /etc/fstab...")
    res = run(["genfstab", "-U", ctx.mnt], check=False, dry_run=ctx.dry_run)
    if res.rc != 0:
        raise ExternalCommandError("genfstab failed.", ["genfstab", "-U", ctx.mnt], res.rc)
    if ctx.dry_run:
        return
    fstab = in_target(ctx.mnt, "/etc/fstab")
    append_file(fstab, res.out or "")
    if not read_text(fstab).strip():
        raise ExternalCommandError("fstab file is empty. Something went wrong.", ["genfstab"], res.rc)
    console.startup_ok("/etc/fstab generated successfully.")


def crypttab_text(home_uuid: str | None) -> str:
    if not home_uuid:
        return ""
    return f"crypthome UUID={home_uuid} none luks,nofail,x-systemd.device-timeout=0\n"


def setup_crypttab(ctx: Context):
    """Write /etc/crypttab; the root mapping is unlocked by GRUB, so only home appears."""

    console.section_header("Creating /etc/crypttab")
    cfg = ctx.config
    home_uuid = None
    if cfg.separate_home:
        home_uuid = luks_uuid(cfg.home_partition, dry_run=ctx.dry_run)
        if not home_uuid:
            raise PreconditionError("Unable to retrieve LUKS UUID for /home partition.")
    path = in_target(ctx.mnt, "/etc/crypttab")
    write_file(path, crypttab_text(home_uuid))
    log_block("/etc/crypttab content", read_text(path))
    console.startup_ok("/etc/crypttab created and validated successfully")


def setup_zram(ctx: Context):
    console.section_header("ZRAM Setup")
    write_file(in_target(ctx.mnt, "/etc/systemd/zram-generator.conf"), ZRAM_CONF)
    console.startup_ok("ZRAM configured: dynamic size (up to 8 GB), compression: zstd")
    res = run(["arch-chroot", ctx.mnt, "systemctl", "cat", "systemd-zram-setup@zram0.service"],
              check=False, dry_run=ctx.dry_run)
    if res.rc != 0:
        raise AdvisoryError("Could not inspect ZRAM systemd unit (may be enabled after reboot).")


def tune_pacman_conf(text: str) -> str:
    text = re.sub(r"^#Color\s*$", "Color", text, flags=re.MULTILINE)
    if not re.search(r"^ILoveCandy", text, re.MULTILINE):
        text = re.sub(r"^Color$", "Color\nILoveCandy", text, count=1, flags=re.MULTILINE)
    text = re.sub(r"^#ParallelDownloads.*$", "ParallelDownloads = 10", text, flags=re.MULTILINE)
    text = re.sub(r"^#VerbosePkgLists", "VerbosePkgLists", text, flags=re.MULTILINE)
    text = re.sub(r"^#CheckSpace", "CheckSpace", text, flags=re.MULTILINE)
    text = _enable_multilib(text)
    if "[core-testing]" not in text:
        text = text.rstrip("\n") + "\n" + TESTING_REPOS
    return text


def _enable_multilib(text: str) -> str:
    lines = text.splitlines(keepends=True)
    inside = False
    for i, line in enumerate(lines):
        if line.startswith("#[multilib]"):
            inside = True
        if inside and line.startswith("#"):
            lines[i] = line[1:]
            if line.startswith("#Include"):
                inside = False
    return "".join(lines)


def tune_makepkg_conf(text: str, jobs: int) -> str:
    text = set_assignment(text, "MAKEFLAGS", f'"-j{jobs}"')
    text = set_assignment(text, "BUILDENV", "(!distcc color !ccache !check !sign)")
    return set_assignment(text, "PKGEXT", '".pkg.tar.zst"', commented_ok=False)


def configure_package_management(ctx: Context):
    console.section_header("Package Manager Tweaks and Yay Installation")
    pacman_conf = in_target(ctx.mnt, "/etc/pacman.conf")
    makepkg_conf = in_target(ctx.mnt, "/etc/makepkg.conf")
    if not os.path.isfile(pacman_conf):
        raise AdvisoryError(f"{pacman_conf} not found; skipping package manager tweaks.")

    console.info_print("Tweaking pacman.conf for color, parallel downloads, and candy...")
    write_file(pacman_conf, tune_pacman_conf(read_text(pacman_conf)))
    console.startup_ok("pacman.conf tuned; multilib and testing repositories enabled.")

    if os.path.isfile(makepkg_conf):
        console.info_print("Optimizing makepkg.conf for parallel builds...")
        write_file(makepkg_conf, tune_makepkg_conf(read_text(makepkg_conf), os.cpu_count() or 1))
        console.startup_ok("makepkg.conf optimized.")

    install_yay(ctx)


def install_yay(ctx: Context):
    console.info_print("Installing yay AUR helper...")
    script = Path(in_target(ctx.mnt, "/root/scripts/yay-install.sh"))
    write_file(script, YAY_SCRIPT, 0o755)
    try:
        res = run(["arch-chroot", ctx.mnt, "/root/scripts/yay-install.sh"], check=False, dry_run=ctx.dry_run)
    finally:
        script.unlink(missing_ok=True)
    if res.rc != 0:
        raise AdvisoryError("yay installation failed.")
    if run(["arch-chroot", ctx.mnt, "which", "yay"], check=False, dry_run=ctx.dry_run).rc != 0:
        raise AdvisoryError("yay not found in PATH after installation.")
    console.startup_ok("yay installed successfully.")


def save_keymap_config(ctx: Context):
    write_file(in_target(ctx.mnt, "/etc/vconsole.conf"), f"KEYMAP={ctx.config.keymap}\n")
    console.startup_ok(f"Saved keymap '{ctx.config.keymap}' to /etc/vconsole.conf.")


def save_locale_config(ctx: Context):
    locale = ctx.config.locale
    write_file(in_target(ctx.mnt, "/etc/locale.conf"), f"LANG={locale}\n")
    locale_gen = in_target(ctx.mnt, "/etc/locale.gen")
    text = read_text(locale_gen)
    updated = uncomment(text, re.escape(locale) + r"\s")
    if f"\n{locale} " not in "\n" + updated:
        updated = updated + ("" if not updated or updated.endswith("\n") else "\n") + f"{locale} UTF-8\n"
    write_file(locale_gen, updated)
    res = run(["arch-chroot", ctx.mnt, "locale-gen"], check=False, dry_run=ctx.dry_run)
    if res.rc != 0:
        raise ExternalCommandError("locale-gen failed.", ["locale-gen"], res.rc)
    console.startup_ok(f"Locale '{locale}' configured and generated.")


def hosts_text(hostname: str) -> str:
    return (
        "127.0.0.1   localhost\n"
        "::1         localhost\n"
        f"127.0.1.1   {hostname}.localdomain {hostname}\n"
    )


def save_hostname_config(ctx: Context):
    console.section_header("Writing hostname and hosts file")
    hostname = ctx.config.hostname
    if not hostname:
        raise PreconditionError("Hostname is empty. Cannot configure hostname.")
    write_file(in_target(ctx.mnt, "/etc/hostname"), hostname + "\n")
    console.startup_ok(f"Saved hostname '{hostname}' to /etc/hostname.")
    write_file(in_target(ctx.mnt, "/etc/hosts"), hosts_text(hostname))
    console.startup_ok(f"/etc/hosts configured with hostname '{hostname}'.")


def detect_timezone(dry_run: bool = False) -> str:
    res = run(["curl", "-s", "--max-time", "10", TIMEZONE_URL], check=False, dry_run=dry_run, timeout=15.0)
    zone = (res.out or "").strip() if res.rc == 0 and not dry_run else ""
    # ip-api answers with an error line rather than a zone when it is rate limited
    if not zone or " " in zone:
        return ""
    return zone


def set_timezone(ctx: Context):
    console.section_header("Timezone & Clock Configuration")
    console.info_print("Detecting timezone via ip-api.com...")
    zone = detect_timezone(ctx.dry_run)
    if zone:
        console.startup_ok(f"Detected timezone: {zone}")
    else:
        console.error_print("Failed to detect timezone. Defaulting to UTC.")
        zone = "UTC"
    ctx.config.timezone = zone

    localtime = Path(in_target(ctx.mnt, "/etc/localtime"))
    localtime.parent.mkdir(parents=True, exist_ok=True)
    if localtime.is_symlink() or localtime.exists():
        localtime.unlink()
    os.symlink(f"/usr/share/zoneinfo/{zone}", localtime)
    console.startup_ok(f"Timezone set to {zone}.")

    res = run(["arch-chroot", ctx.mnt, "hwclock", "--systohc"], check=False, dry_run=ctx.dry_run)
    if res.rc != 0:
        raise ExternalCommandError("Failed to synchronize hardware clock. See log.", ["hwclock"], res.rc)
    console.startup_ok("Hardware clock synchronized.")
