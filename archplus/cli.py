"""CLI entrypoint for the ArchLinuxPlus installer."""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from . import (
    accounts,
    base_system,
    bootloader,
    btrfs,
    console,
    finalize,
    initramfs,
    luks,
    partitioning,
    prompts,
    secureboot,
    snapper,
)
from .boot_plumbing import setup_cmdline_file
from .executil import log_msg, log_start, set_debug
from .model import Context, Flags, InstallConfig
from .paths import mount_root
from .pipeline import PipelineState, Stage, run_pipeline
from .verification import verify_boot_stage
from .version import version_string

BANNER = r"""
    _             _     _     _                  ____  _
   / \   _ __ ___| |__ | |   (_)_ __  _   ___  _|  _ \| |_   _ ___
  / _ \ | '__/ __| '_ \| |   | | '_ \| | | \ \/ / |_) | | | | / __|
 / ___ \| | | (__| | | | |___| | | | | |_| |>  <|  __/| | |_| \__ \
/_/   \_\_|  \___|_| |_|_____|_|_| |_|\__,_/_/\_\_|   |_|\__,_|___/
"""


def build_stages() -> List[Stage]:
    """The installer, in dependency order."""

    return [
        Stage("setup_keymap_and_locale", prompts.setup_keymap_and_locale, "Keyboard layout and locale"),
        Stage("select_disk", prompts.select_disk, "Disk selection"),
        Stage("partition_layout_choice", prompts.partition_layout_choice, "Partition layout"),
        Stage("password_and_user_setup", prompts.password_and_user_setup, "Passwords and user"),
        Stage("network_selector", prompts.network_selector, "Network selection"),
        Stage("setup_hostname", prompts.setup_hostname, "Hostname"),
        Stage("kernel_selector", prompts.kernel_selector, "Kernel selection"),
        Stage("editor_selector", prompts.editor_selector, "Editor selection"),
        Stage("select_grub_theme", prompts.select_grub_theme, "GRUB theme"),
        Stage("confirm_installation", prompts.confirm_installation, "Confirmation"),
        Stage("wipe_disk", partitioning.wipe_disk, "Disk wipe"),
        Stage("partition_disk", partitioning.partition_disk, "Disk partitioning"),
        Stage("wipe_existing_luks_if_any", luks.wipe_existing_luks_if_any, "Stale LUKS headers"),
        Stage("encrypt_partitions", luks.encrypt_partitions, "LUKS encryption"),
        Stage("format_btrfs", btrfs.format_filesystems, "Filesystems"),
        Stage("create_btrfs_subvolumes", btrfs.create_subvolumes, "Btrfs subvolumes"),
        Stage("mount_subvolumes", btrfs.mount_subvolumes, "Mounts"),
        Stage("nocow_setup", btrfs.apply_nocow, "NoCOW attributes"),
        Stage("microcode_detector", base_system.microcode_detector, "Microcode detection"),
        Stage("install_base_system", base_system.install_base_system, "Base system"),
        Stage("move_logfile_to_mnt", base_system.move_logfile_to_mnt, "Log relocation"),
        Stage("gen_fstab", base_system.gen_fstab, "fstab"),
        Stage("setup_crypttab", base_system.setup_crypttab, "crypttab"),
        Stage("setup_zram", base_system.setup_zram, "ZRAM"),
        Stage("configure_package_management", base_system.configure_package_management, "Package management"),
        Stage("save_keymap_config", base_system.save_keymap_config, "Console keymap"),
        Stage("save_locale_config", base_system.save_locale_config, "Locale"),
        Stage("save_hostname_config", base_system.save_hostname_config, "Hostname files"),
        Stage("set_timezone", base_system.set_timezone, "Timezone"),
        Stage("create_users", accounts.create_users, "Accounts"),
        Stage("setup_secureboot_structure", secureboot.setup_secureboot_structure, "Secure Boot keys"),
        Stage("setup_cmdline_file", setup_cmdline_file, "Kernel command line"),
        Stage("generate_initramfs", initramfs.generate_initramfs_with_mkinitcpio, "Initramfs"),
        Stage("setup_grub_bootloader", bootloader.setup_grub_bootloader, "GRUB bootloader"),
        Stage("setup_boot_targets", bootloader.setup_boot_targets, "Boot targets"),
        Stage("setup_grub_pacman_hook", secureboot.setup_grub_pacman_hook, "GRUB pacman hook"),
        Stage("setup_grub_resign_timer", secureboot.setup_grub_resign_timer, "GRUB re-sign timer"),
        Stage("setup_snapper", snapper.setup_snapper, "Snapper"),
        Stage("enable_services", snapper.enable_services, "Services"),
        Stage("final_cleanup", finalize.final_cleanup, "Final cleanup"),
        Stage("verify_boot_integrity", verify_boot_stage, "Boot verification"),
        Stage("final_message", finalize.final_message, "Finish"),
    ]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="archplus-install",
        description="Install an encrypted Btrfs Arch Linux with a Secure Boot signed GRUB.",
    )
    parser.add_argument("--debug", action="store_true", help="echo every log line to stderr")
    parser.add_argument("--dry-run", action="store_true", help="log external commands instead of running them")
    parser.add_argument("--version", action="store_true", help="print the installer version and exit")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    version = version_string()
    if args.version:
        print(f"ArchLinuxPlus installer {version}")
        return 0

    set_debug(args.debug)
    flags = Flags(debug=args.debug, dry_run=args.dry_run, mnt=mount_root())
    ctx = Context(config=InstallConfig(), flags=flags)

    console.plain(BANNER)
    console.plain(f"  {version}")
    log_start(version)
    if flags.dry_run:
        console.warning_print("Dry run: external commands are logged, not executed.")
    log_msg(f"[CLI ] debug={flags.debug} dry_run={flags.dry_run} mnt={flags.mnt}")

    report = run_pipeline(build_stages(), ctx)
    if report.warnings:
        log_msg("[CLI ] warnings: " + ", ".join(r.name for r in report.warnings))
    log_msg(f"[CLI ] pipeline {report.state.value} exit={report.exit_code}")
    if report.state is not PipelineState.COMPLETED:
        return report.exit_code or 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
