"""Secure Boot signing keys and the GRUB re-signing machinery."""

from __future__ import annotations

from pathlib import Path

from . import console
from .errors import AdvisoryError, ExternalCommandError
from .executil import run
from .files import write_file
from .model import Context
from .paths import in_target

KEY_DIR = "/etc/secureboot/keys"
GRUB_EFI = "/efi/EFI/GRUB/grubx64.efi"
RESIGN_SCRIPT = "/usr/local/bin/resign-grub"
PACMAN_HOOK = "/etc/pacman.d/hooks/99-grub-sign.hook"
RESIGN_SERVICE = "/etc/systemd/system/grub-resign.service"
RESIGN_TIMER = "/etc/systemd/system/grub-resign.timer"

# (file stem, certificate subject)
KEYS = (
    ("PK", "/CN=Platform Key/"),
    ("KEK", "/CN=Key Exchange Key/"),
    ("db", "/CN=Signature Database/"),
)


def keygen_command(mnt: str, stem: str, subject: str) -> list[str]:
    return [
        "arch-chroot", mnt, "openssl", "req", "-new", "-x509", "-newkey", "rsa:4096",
        "-subj", subject,
        "-keyout", f"{KEY_DIR}/{stem}.key", "-out", f"{KEY_DIR}/{stem}.crt",
        "-days", "3650", "-nodes", "-sha256",
    ]


def setup_secureboot_structure(ctx: Context):
    console.section_header("Secure Boot Key Generation")
    console.info_print("Generating Secure Boot keys (PK, KEK, db)...")
    key_dir = Path(in_target(ctx.mnt, KEY_DIR))
    key_dir.mkdir(parents=True, exist_ok=True)
    for stem, subject in KEYS:
        cmd = keygen_command(ctx.mnt, stem, subject)
        res = run(cmd, check=False, dry_run=ctx.dry_run, timeout=300.0)
        if res.rc != 0:
            raise ExternalCommandError(f"Failed to generate Secure Boot key {stem}.", cmd[:4], res.rc)
    for key in key_dir.glob("*.key"):
        key.chmod(0o600)
    console.startup_ok(f"Secure Boot keys generated and stored in {KEY_DIR}.")


def resign_script(trigger: str) -> str:
    return f"""#!/bin/bash
set -euo pipefail

GRUB_EFI="{GRUB_EFI}"
KEY="{KEY_DIR}/db.key"
CERT="{KEY_DIR}/db.crt"
LOG="/var/log/grub-sign.log"

echo "[INFO] {trigger} at $(date)" >> "$LOG"

if [[ ! -f "$GRUB_EFI" ]]; then
  echo "[ERROR] GRUB EFI binary not found at $GRUB_EFI" >> "$LOG"
  exit 1
fi

if sbsign --key "$KEY" --cert "$CERT" --output "$GRUB_EFI" "$GRUB_EFI" >> "$LOG" 2>&1; then
  echo "[OK] GRUB EFI binary signed." >> "$LOG"
else
  echo "[FAIL] GRUB EFI signing failed!" >> "$LOG"
  exit 1
fi

if sbverify --cert "$CERT" "$GRUB_EFI" >> "$LOG" 2>&1; then
  echo "[OK] Signature verified." >> "$LOG"
else
  echo "[FAIL] Signature verification failed!" >> "$LOG"
  exit 1
fi
"""


PACMAN_HOOK_TEXT = f"""[Trigger]
Type = Package
Operation = Install
Operation = Upgrade
Target = grub

[Action]
Description = Re-signing GRUB EFI binary for Secure Boot...
When = PostTransaction
Exec = {RESIGN_SCRIPT}
"""

SERVICE_TEXT = f"""[Unit]
Description=Re-sign GRUB EFI binary for Secure Boot

[Service]
Type=oneshot
ExecStart={RESIGN_SCRIPT}
"""

TIMER_TEXT = """[Unit]
Description=Daily GRUB re-signing for Secure Boot

[Timer]
OnBootSec=10min
OnUnitActiveSec=1d
Persistent=true

[Install]
WantedBy=timers.target
"""


def setup_grub_pacman_hook(ctx: Context):
    console.section_header("GRUB Secure Boot Pacman Hook Setup")
    console.info_print("Installing GRUB re-sign pacman hook...")
    write_file(in_target(ctx.mnt, RESIGN_SCRIPT), resign_script("GRUB re-sign triggered"), 0o755)
    write_file(in_target(ctx.mnt, PACMAN_HOOK), PACMAN_HOOK_TEXT)
    console.startup_ok("GRUB pacman hook and signing script installed.")


def setup_grub_resign_timer(ctx: Context):
    console.section_header("Installing GRUB Secure Boot Re-sign Timer")
    script = Path(in_target(ctx.mnt, RESIGN_SCRIPT))
    if not script.exists():
        write_file(script, resign_script("Scheduled GRUB re-sign"), 0o755)
    write_file(in_target(ctx.mnt, RESIGN_SERVICE), SERVICE_TEXT)
    write_file(in_target(ctx.mnt, RESIGN_TIMER), TIMER_TEXT)
    res = run(["arch-chroot", ctx.mnt, "systemctl", "enable", "grub-resign.timer"], check=False, dry_run=ctx.dry_run)
    if res.rc != 0:
        raise AdvisoryError("grub-resign.timer installed but could not be enabled.")
    console.startup_ok("GRUB re-sign timer installed and enabled.")
