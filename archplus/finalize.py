"""Cleanup, closing summary and the reboot hand-off."""
from __future__ import annotations

import os
import subprocess

from . import console
from .btrfs import unmount_all
from .executil import log_msg, resolve_log_path, run
from .model import Context
from .paths import in_target
from .secureboot import KEY_DIR


def final_cleanup(ctx: Context):
    console.section_header("Final Cleanup")
    mnt = ctx.mnt
    console.info_print("Cleaning up temporary files...")
    run(["arch-chroot", mnt, "bash", "-c", "rm -rf /tmp/*"], check=False, dry_run=ctx.dry_run)
    console.info_print("Checking for leftover sudoers overrides...")
    run(["arch-chroot", mnt, "rm", "-f", "/etc/sudoers.d/aurbuilder"], check=False, dry_run=ctx.dry_run)
    console.info_print("Reloading mount table (in case of lingering binds)...")
    run(["mount", "--make-rprivate", mnt], check=False, dry_run=ctx.dry_run)
    console.startup_ok("Final cleanup completed.")


def post_install_warnings(ctx: Context) -> list[str]:
    """Soft checks shown with the summary; nothing here blocks the reboot."""

    mnt = ctx.mnt
    warnings = []
    for timer in ("snapper-timeline.timer", "snapper-cleanup.timer"):
        if run(["arch-chroot", mnt, "systemctl", "is-enabled", timer], check=False, dry_run=ctx.dry_run).rc != 0:
            warnings.append(f"{timer} is not enabled.")
    keys = in_target(mnt, KEY_DIR)
    if not ctx.dry_run and (not os.path.isdir(keys) or not os.listdir(keys)):
        warnings.append(f"Secure Boot keys not found in {keys}.")
    res = run(["efibootmgr"], check=False, dry_run=ctx.dry_run)
    if res.rc == 0 and not ctx.dry_run and "ArchLinuxPlus" not in (res.out or ""):
        warnings.append("No UEFI boot entry for 'ArchLinuxPlus' detected in NVRAM; "
                        "the fallback loader EFI/Boot/BOOTX64.EFI will be used.")
    return warnings


def view_log(path: str) -> None:
    subprocess.run(["less", path], check=False)


def safe_unmount(ctx: Context) -> bool:
    console.info_print(f"Attempting to unmount {ctx.mnt} cleanly...")
    if unmount_all(ctx.mnt, dry_run=ctx.dry_run):
        console.startup_ok(f"{ctx.mnt} unmounted successfully.")
        return True
    console.warning_print(f"Some {ctx.mnt} submounts could not be unmounted cleanly. Continuing anyway.")
    return False


def final_message(ctx: Context):
    console.section_header("Installation Complete")
    cfg = ctx.config
    log_path = resolve_log_path()
    console.startup_ok("Installation completed successfully.")
    console.info_print("Summary of important details:")
    for label, value in (
        ("Disk", cfg.disk),
        ("Username", cfg.username or "root only"),
        ("Kernel", cfg.kernel.package),
        ("Editor", cfg.editor.package),
        ("GRUB Theme", f"{cfg.grub_theme.directory} ({cfg.grub_theme.gfxmode})"),
        ("Secure Boot Keys", KEY_DIR),
        ("Snapper Config", "/etc/snapper/configs/root"),
        ("Logfile", log_path),
    ):
        console.plain(f"  {console.BOLD}{label}:{console.RESET} {value}")
    console.plain()

    for warning in post_install_warnings(ctx):
        console.warning_print(warning)
        log_msg(f"WARN: {warning}")

    if console.ask_yes_no("Would you like to view the install log now? [y/N]", default=False) and log_path:
        view_log(log_path)
    else:
        console.info_print(f"You can view the full log anytime with: less {log_path}")

    console.startup_ok("Installation is complete. You may now reboot your system.")
    console.info_print("Next Steps:")
    console.plain("  - Reboot into your new system.")
    console.plain(f"  - Enroll your Secure Boot keys in firmware setup (located at {KEY_DIR}).")
    console.plain("  - Snapper will automatically manage Btrfs snapshots.")
    console.plain(f"  - If needed, review installation details in the logfile: {log_path}")

    if not console.ask_yes_no("Would you like to reboot now? [y/N]", default=False):
        console.info_print(f"Reboot manually when ready. Remember to unmount {ctx.mnt} if needed.")
        return
    console.info_print("Preparing for reboot...")
    safe_unmount(ctx)
    console.info_print("Rebooting system now.")
    run(["reboot"], check=False, dry_run=ctx.dry_run)
