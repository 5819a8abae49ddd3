"""Write the kernel command line, /etc/default/grub and mkinitcpio.conf."""
import os
import re

from . import console
from .errors import ExternalCommandError, PreconditionError
from .executil import log_block
from .files import read_text, set_assignment, write_file
from .luks import luks_uuid
from .model import Context, GrubTheme
from .paths import in_target

KERNEL_CMDLINE = "root=/dev/mapper/cryptroot rootflags=subvol=@ rw quiet splash loglevel=3"
HOOKS = "(base udev autodetect modconf block encrypt filesystems keyboard plymouth)"
GRUB_SPLASH = '"/boot/plymouth/arch-logo.png"'


def grub_cmdline(uuid: str) -> str:
    return (
        f"cryptdevice=UUID={uuid}:cryptroot rd.luks.name={uuid}=cryptroot "
        "root=/dev/mapper/cryptroot rootflags=subvol=@ rw quiet splash"
    )


def write_cmdline(mnt: str, cmdline: str = KERNEL_CMDLINE) -> str:
    path = in_target(mnt, "/etc/kernel/cmdline")
    write_file(path, cmdline + "\n")
    return path


def grub_defaults(theme: GrubTheme, uuid: str | None) -> list[tuple[str, str]]:
    """Key/value pairs applied to /etc/default/grub, in write order."""

    pairs = [
        ("GRUB_GFXMODE", theme.gfxmode),
        ("GRUB_GFXPAYLOAD_LINUX", "keep"),
        ("GRUB_THEME", f'"/boot/grub/themes/{theme.directory}/theme.txt"'),
        ("GRUB_TERMINAL_OUTPUT", "gfxterm"),
        ("GRUB_TIMEOUT", "5"),
        ("GRUB_TIMEOUT_STYLE", "menu"),
        ("GRUB_SPLASH", GRUB_SPLASH),
    ]
    if uuid:
        pairs.append(("GRUB_CMDLINE_LINUX", f'"{grub_cmdline(uuid)}"'))
    pairs.append(("GRUB_ENABLE_CRYPTODISK", "y"))
    return pairs


def update_grub_defaults(mnt: str, pairs) -> str:
    path = in_target(mnt, "/etc/default/grub")
    text = read_text(path)
    for key, value in pairs:
        text = set_assignment(text, key, value)
    write_file(path, text)
    return path


def update_mkinitcpio_conf(mnt: str) -> str:
    path = in_target(mnt, "/etc/mkinitcpio.conf")
    text = read_text(path)
    if not text:
        raise PreconditionError(f"{path} not found; is mkinitcpio installed in the target?")
    text = set_assignment(text, "HOOKS", HOOKS, commented_ok=False)
    text = set_assignment(text, "COMPRESSION", '"zstd"')
    write_file(path, text)
    return path


def hooks_have_encrypt(mnt: str) -> bool:
    text = read_text(in_target(mnt, "/etc/mkinitcpio.conf"))
    return bool(re.search(r"^HOOKS=.*\bencrypt\b", text, re.MULTILINE))


def setup_cmdline_file(ctx: Context):
    console.section_header("Generating Kernel Command Line")
    path = write_cmdline(ctx.mnt)
    if not os.path.getsize(path):
        raise ExternalCommandError(f"Failed to write kernel command line to {path}")

    uuid = luks_uuid(ctx.config.root_partition, dry_run=ctx.dry_run)
    if not uuid:
        raise PreconditionError(f"Could not read LUKS UUID of {ctx.config.root_partition}.")
    grub = update_grub_defaults(ctx.mnt, [("GRUB_CMDLINE_LINUX", f'"{grub_cmdline(uuid)}"')])

    log_block("/etc/kernel/cmdline content", read_text(path))
    log_block(
        "/etc/default/grub updated with cmdline",
        "\n".join(l for l in read_text(grub).splitlines() if l.startswith("GRUB_CMDLINE_LINUX")),
    )
    console.startup_ok("Kernel command line written and GRUB_CMDLINE_LINUX updated")
