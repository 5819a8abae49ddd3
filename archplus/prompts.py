"""Interactive configuration stages.

Each stage fills in a handful of ``InstallConfig`` fields and nothing else.
Bad answers are re-asked through ``console.ask``; only cancelling the disk
selection or declining the final confirmation ends the run.
"""

from __future__ import annotations

from typing import Sequence

from . import console, devices, safety
from .errors import AdvisoryError, PreconditionError, ValidationError
from .executil import run
from .model import Context, Editor, GrubTheme, Kernel, NetworkStack

MIN_ROOT_GIB = 10


def search_candidates(term: str, items: Sequence[str]) -> list[str]:
    needle = term.lower()
    return [item for item in items if needle in item.lower()]


def validate_root_size(raw: str, total_gib: int) -> int:
    """Accept a root size ``r`` iff ``10 <= r < total``."""

    if not (raw.isascii() and raw.isdigit()) or not (MIN_ROOT_GIB <= int(raw) < total_gib):
        raise ValidationError(
            f"Invalid input. Please enter a number between {MIN_ROOT_GIB} and {total_gib - 1}."
        )
    return int(raw)


def _pick_from_search(kind: str, default: str, items: list[str]) -> str:
    def _resolve(term: str) -> str:
        if term in items:
            return term
        matches = list(dict.fromkeys(search_candidates(term, items)))
        if not matches:
            raise ValidationError(f"No matching {kind}s found. Please try again.")
        if len(matches) == 1:
            return matches[0]
        console.info_print("Multiple matches found:")
        return console.choose(f"Enter number to select {kind}", matches, matches)

    if not items:
        # nothing to validate against; trust the operator
        return console.ask_text(f"Enter desired {kind} (default: {default})", default=default)
    return console.ask(
        f"Enter desired {kind} (type part to search, default: {default})",
        _resolve,
        default=default,
    )


def setup_keymap_and_locale(ctx: Context):
    console.section_header("Keyboard Layout and Locale Setup")
    cfg = ctx.config
    cfg.keymap = _pick_from_search("keymap", cfg.keymap, devices.list_keymaps())
    console.startup_ok(f"Keymap set to '{cfg.keymap}'.")
    cfg.locale = _pick_from_search("locale", cfg.locale, devices.list_locales())
    console.startup_ok(f"Locale set to '{cfg.locale}'.")
    res = run(["loadkeys", cfg.keymap], check=False, dry_run=ctx.dry_run)
    if res.rc != 0:
        raise AdvisoryError(f"Failed to load keymap '{cfg.keymap}'. Continuing anyway.")


def select_disk(ctx: Context):
    console.section_header("Disk Selection")
    while True:
        disks = devices.list_disks()
        if not disks:
            raise PreconditionError("No suitable block devices found.")
        console.plain()
        console.info_print("Detected available disks:")
        for i, line in enumerate(disks, start=1):
            console.plain(f"  {i}) {line}")
        console.plain()

        def _validate(raw: str) -> int:
            if raw == "":
                raise PreconditionError("Disk selection cancelled by user.")
            return console.validate_disk_index(raw, len(disks))

        idx = console.ask("Select the number of the disk to install Arch on (or press Enter to cancel)", _validate)
        disk = devices.disk_name(disks[idx])
        ok, reason = safety.guard_not_live_disk(disk)
        if not ok:
            console.warning_print(reason)
            continue
        console.startup_ok(f"You selected: {disk}")
        console.info_print(f"Partition layout for {disk}:")
        console.plain(devices.layout_text(disk))
        console.error_print(f"!! ALL DATA ON {disk} WILL BE IRREVERSIBLY LOST !!")
        if console.ask_yes_no(f"Are you sure you want to proceed with {disk}? [y/N]", default=False):
            ctx.config.disk = disk
            console.startup_ok(f"Disk {disk} confirmed and ready for partitioning.")
            return
        console.warning_print("Disk not confirmed. Returning to selection.")


def partition_layout_choice(ctx: Context):
    console.section_header("Partition Layout Setup")
    cfg = ctx.config
    cfg.secure_wipe = console.ask_yes_no(
        "Do you want to perform a full secure wipe of the disk? (very slow) [y/N]", default=False
    )
    if cfg.secure_wipe:
        console.warning_print("Secure wipe selected. This can take a LONG time!")
    else:
        console.info_print("Normal wipe selected (quick erase of partition table only).")

    cfg.separate_home = console.ask_yes_no(
        "Do you want to create a separate encrypted /home partition? [Y/n]", default=True
    )
    if not cfg.separate_home:
        console.info_print("Will use single encrypted root partition (no separate /home).")
        return
    console.info_print("Will create a separate encrypted /home partition.")
    total = devices.disk_size_gib(cfg.disk)
    if total <= MIN_ROOT_GIB:
        raise PreconditionError(f"{cfg.disk} is too small ({total}GB) for a separate /home.")
    default_size = total // 2
    cfg.root_size_gib = console.ask(
        f"Enter size for root partition in GB (default: {default_size}GB)",
        lambda raw: validate_root_size(raw, total),
        default=str(max(default_size, MIN_ROOT_GIB)),
    )
    console.startup_ok(f"Root partition size set to {cfg.root_size_gib}GB.")


def password_and_user_setup(ctx: Context):
    console.section_header("Password and User Setup")
    cfg = ctx.config
    cfg.luks_password = console.ask_confirmed_secret("LUKS password")
    console.startup_ok("LUKS password set successfully.")

    username = console.ask_text("Enter desired username (leave empty for root only)")
    cfg.username = username or None
    if cfg.username:
        console.startup_ok(f"Username set to '{cfg.username}'.")
    else:
        console.info_print("No username entered. System will only have root account.")

    reuse = console.ask_yes_no("Reuse LUKS password for root and user accounts? [Y/n]", default=True)
    if reuse:
        cfg.root_password = cfg.luks_password
        if cfg.username:
            cfg.user_password = cfg.luks_password
        console.info_print("Reusing LUKS password for all accounts.")
    else:
        cfg.root_password = console.ask_confirmed_secret("root password")
        console.startup_ok("Root password set successfully.")
        if cfg.username:
            cfg.user_password = console.ask_confirmed_secret(f"user password for {cfg.username}")
            console.startup_ok(f"User password for '{cfg.username}' set successfully.")

    if not cfg.username:
        return
    if not console.ask_yes_no(f"Do you want to restore dotfiles for {cfg.username}? [y/N]", default=False):
        console.info_print("Skipping dotfiles restore.")
        return
    repo = console.ask_text("Enter Git URL for dotfiles repository (e.g. https://github.com/user/dotfiles)")
    if repo:
        cfg.dotfiles_repo = repo
        console.startup_ok(f"Dotfiles will be restored from '{repo}'.")
    else:
        console.warning_print("No URL entered. Skipping dotfiles restore.")


def network_selector(ctx: Context):
    console.section_header("Network System Selection")
    console.info_print("Available Network Options:")
    options = list(NetworkStack)
    choice = console.choose("Select your networking utility", options, [o.label for o in options])
    ctx.config.network = choice
    if choice is NetworkStack.NONE:
        raise AdvisoryError("Skipping network setup as requested.")
    console.startup_ok(f"Selected {' + '.join(choice.packages)}.")


def setup_hostname(ctx: Context):
    console.section_header("Hostname Setup")
    ctx.config.hostname = console.ask_text(
        "Enter desired hostname for your system (default: archlinux)", default="archlinux"
    )
    console.startup_ok(f"Hostname set to '{ctx.config.hostname}'.")


def kernel_selector(ctx: Context):
    console.section_header("Kernel Selection")
    console.info_print("Available Kernels:")
    options = list(Kernel)
    ctx.config.kernel = console.choose("Select your preferred kernel", options, [o.label for o in options])
    console.startup_ok(f"Selected kernel ({ctx.config.kernel.package}).")


def editor_selector(ctx: Context):
    console.section_header("Editor Selection")
    console.info_print("Select a default text editor:")
    options = list(Editor)
    ctx.config.editor = console.choose("Select your preferred editor", options, [o.label for o in options])
    console.startup_ok(f"Selected {ctx.config.editor.package} as default editor.")


def select_grub_theme(ctx: Context):
    console.section_header("GRUB Theme Selection")
    console.info_print("Select GRUB theme resolution:")
    options = list(GrubTheme)
    for i, theme in enumerate(options, start=1):
        console.plain(f"  {i}) {theme.label}" + (" [default]" if i == 1 else ""))
    raw = console.ask_text("Enter choice (1 or 2) [default: 1]", default="1")
    try:
        theme = console.validate_menu_choice(raw, options)
    except ValidationError:
        ctx.config.grub_theme = GrubTheme.ARCH_2K
        raise AdvisoryError("Invalid choice, defaulting to 2K.")
    ctx.config.grub_theme = theme
    console.startup_ok(f"GRUB theme and resolution selected: {theme.gfxmode} ({theme.directory})")


def confirm_installation(ctx: Context):
    console.section_header("Review Your Choices")
    console.plain()
    for label, value in ctx.config.summary():
        console.info_print(f"{label + ':':<15}{value}")
    console.plain()
    console.warning_print(f"WARNING: This will ERASE all data on {ctx.config.disk}!")
    if not console.ask_yes_no(f"Do you want to proceed and erase {ctx.config.disk}? [y/N]", default=False):
        raise PreconditionError("Installation aborted by user.")
    console.startup_ok("Installation confirmed. Proceeding...")
