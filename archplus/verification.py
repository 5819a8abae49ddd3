"""Post-install boot chain verification."""

from __future__ import annotations

import os
from typing import Dict

from . import console
from .boot_plumbing import hooks_have_encrypt
from .errors import PreconditionError
from .executil import log_msg, run
from .files import read_text
from .model import Context, Kernel
from .paths import in_target
from .secureboot import GRUB_EFI, KEY_DIR


def verify_boot_integrity(
    mnt: str,
    kernel: Kernel = Kernel.STABLE,
    separate_home: bool = True,
    dry_run: bool = False,
) -> Dict[str, object]:
    """Check the artifacts a first boot depends on.

    Returns ``{"ok", "checks", "errors", "warnings"}``. Hard failures clear
    ``ok``; the fallback loader and fallback initramfs only add warnings.
    """

    result: Dict[str, object] = {"ok": True, "checks": {}, "errors": [], "warnings": []}

    def _record(name: str, ok: bool, hard: bool = True, **details) -> None:
        result["checks"][name] = {"ok": bool(ok), **details}
        log_msg(f"[{'OK' if ok else ('FAIL' if hard else 'WARN')}] {name}")
        if ok:
            return
        if hard:
            result["ok"] = False
            result["errors"].append({"check": name, **details})
        else:
            result["warnings"].append({"check": name, **details})

    grub_cfg = in_target(mnt, "/boot/grub/grub.cfg")
    _record("grub_cfg", os.path.isfile(grub_cfg), path=grub_cfg)

    grub_efi = in_target(mnt, GRUB_EFI)
    present = os.path.isfile(grub_efi)
    _record("grub_efi", present, path=grub_efi)
    if present:
        res = run(["arch-chroot", mnt, "sbverify", "--cert", f"{KEY_DIR}/db.crt", GRUB_EFI],
                  check=False, dry_run=dry_run)
        _record("grub_efi_signature", res.rc == 0, rc=res.rc)

    fallback = in_target(mnt, "/efi/EFI/Boot/BOOTX64.EFI")
    _record("fallback_efi", os.path.isfile(fallback), hard=False, path=fallback)

    default_grub = in_target(mnt, "/etc/default/grub")
    _record("cryptdevice", "cryptdevice=" in read_text(default_grub), path=default_grub)

    initrd = in_target(mnt, f"/boot/{kernel.initramfs_image}")
    _record("initramfs", os.path.isfile(initrd), path=initrd)
    initrd_fallback = in_target(mnt, f"/boot/{kernel.initramfs_fallback}")
    _record("initramfs_fallback", os.path.isfile(initrd_fallback), hard=False, path=initrd_fallback)

    _record("encrypt_hook", hooks_have_encrypt(mnt), path=in_target(mnt, "/etc/mkinitcpio.conf"))

    crypttab = in_target(mnt, "/etc/crypttab")
    _record("crypttab", os.path.isfile(crypttab), path=crypttab)
    if separate_home:
        entries = [line.split()[0] for line in read_text(crypttab).splitlines()
                   if line.strip() and not line.lstrip().startswith("#")]
        _record("crypttab_home", "crypthome" in entries, path=crypttab)

    res = run(["arch-chroot", mnt, "test", "-e", "/dev/mapper/cryptroot"], check=False, dry_run=dry_run)
    _record("cryptroot_mapper", res.rc == 0, rc=res.rc)
    return result


_LABELS = {
    "grub_cfg": "grub.cfg exists.",
    "grub_efi": "grubx64.efi found.",
    "grub_efi_signature": "grubx64.efi is signed correctly.",
    "fallback_efi": "Fallback BOOTX64.EFI exists.",
    "cryptdevice": "cryptdevice= found in GRUB_CMDLINE_LINUX.",
    "initramfs": "initramfs image found.",
    "initramfs_fallback": "initramfs fallback image found.",
    "encrypt_hook": "encrypt hook present in mkinitcpio.conf.",
    "crypttab": "/etc/crypttab exists.",
    "crypttab_home": "crypthome mapping found in crypttab.",
    "cryptroot_mapper": "/dev/mapper/cryptroot exists inside chroot.",
}


def report(result: Dict[str, object]):
    warned = {w["check"] for w in result["warnings"]}
    for name, entry in result["checks"].items():
        label = _LABELS.get(name, name)
        if entry["ok"]:
            console.startup_ok(label)
        elif name in warned:
            console.startup_warn(f"Check failed: {label}")
        else:
            console.startup_fail(f"Check failed: {label}")


def verify_boot_stage(ctx: Context):
    console.section_header("Verifying Boot Setup Integrity")
    log_msg("== Boot Verification Start ==")
    result = verify_boot_integrity(
        ctx.mnt, ctx.config.kernel, ctx.config.separate_home, dry_run=ctx.dry_run
    )
    log_msg("== Boot Verification Complete ==")
    report(result)
    if ctx.dry_run:
        console.info_print("Dry run: verification results are informational only.")
        return
    if not result["ok"]:
        failed = ", ".join(e["check"] for e in result["errors"])
        raise PreconditionError(f"Boot verification failed: {failed}")
    console.startup_ok("Boot setup verified successfully. System is ready to boot!")
