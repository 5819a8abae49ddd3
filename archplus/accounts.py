"""Root and user accounts, skeleton files and dotfiles."""
from __future__ import annotations

import os

from . import console
from .errors import AdvisoryError, ExternalCommandError
from .executil import run
from .files import read_text, write_file
from .model import Context
from .paths import config_base_url, in_target

# (path under /etc/skel, executable)
SKEL_FILES = (
    (".zshrc", False),
    (".bashrc", False),
    (".aliases", False),
    (".local/bin/setup-default-zsh", True),
    (".cache/oh-my-posh/themes/zen.toml", False),
)


def set_default_shell(mnt: str) -> bool:
    path = in_target(mnt, "/etc/default/useradd")
    text = read_text(path)
    if "SHELL=/bin/bash" not in text:
        return False
    write_file(path, text.replace("SHELL=/bin/bash", "SHELL=/bin/zsh"))
    return True


def fetch_skel_files(mnt: str, dry_run: bool = False) -> list[str]:
    """Download the default dotfiles into /etc/skel; return the ones that failed."""

    base = f"{config_base_url()}/etc/skel"
    failed = []
    for rel, executable in SKEL_FILES:
        dest = in_target(mnt, f"/etc/skel/{rel}")
        os.makedirs(os.path.dirname(dest), exist_ok=True)
        res = run(["curl", "-sSLo", dest, f"{base}/{rel}"], check=False, dry_run=dry_run, timeout=60.0)
        if res.rc != 0:
            failed.append(rel)
            continue
        if executable and os.path.exists(dest):
            os.chmod(dest, 0o755)
    return failed


def set_password(mnt: str, account: str, password: str, dry_run: bool = False):
    cmd = ["arch-chroot", mnt, "chpasswd"]
    res = run(cmd, check=False, dry_run=dry_run, input=f"{account}:{password}\n")
    if res.rc != 0:
        raise ExternalCommandError(f"Failed to set password for '{account}'.", cmd, res.rc)


def setup_root(ctx: Context):
    mnt = ctx.mnt
    console.info_print("Setting root password.")
    set_password(mnt, "root", ctx.config.root_password, dry_run=ctx.dry_run)
    console.startup_ok("Root password set.")
    run(["arch-chroot", mnt, "chsh", "-s", "/bin/zsh", "root"], check=False, dry_run=ctx.dry_run)
    run(["arch-chroot", mnt, "cp", "-a", "/etc/skel/.", "/root/"], check=False, dry_run=ctx.dry_run)
    run(["arch-chroot", mnt, "chown", "-R", "root:root", "/root/"], check=False, dry_run=ctx.dry_run)
    console.startup_ok("Root environment configured.")


def sudoers_line(username: str) -> str:
    return f"{username} ALL=(ALL) ALL\n"


def setup_user(ctx: Context):
    mnt = ctx.mnt
    username = ctx.config.username
    console.info_print(f"Creating user '{username}'...")
    cmd = ["arch-chroot", mnt, "useradd", "-m", "-G", "wheel", "-s", "/bin/zsh", username]
    res = run(cmd, check=False, dry_run=ctx.dry_run)
    if res.rc != 0:
        raise ExternalCommandError(f"Failed to create user '{username}'.", cmd, res.rc)
    if ctx.config.user_password:
        set_password(mnt, username, ctx.config.user_password, dry_run=ctx.dry_run)
        console.startup_ok(f"User '{username}' created and password set.")
    else:
        console.startup_warn("User password is empty. User created without password.")
    write_file(in_target(mnt, f"/etc/sudoers.d/{username}"), sudoers_line(username), 0o440)
    console.startup_ok(f"Sudo access granted to {username}.")


def restore_dotfiles(ctx: Context) -> bool:
    username = ctx.config.username
    repo = ctx.config.dotfiles_repo
    console.info_print("Cloning dotfiles and applying with stow...")
    script = (
        f"sudo -u {username} git clone --depth=1 '{repo}' /home/{username}/.dotfiles && "
        f"cd /home/{username}/.dotfiles && "
        f"sudo -u {username} stow */"
    )
    res = run(["arch-chroot", ctx.mnt, "/bin/bash", "-c", script], check=False, dry_run=ctx.dry_run)
    if res.rc != 0:
        return False
    console.startup_ok("Dotfiles restored using stow.")
    return True


def create_users(ctx: Context):
    console.section_header("User and Root Setup")
    warnings = []
    if set_default_shell(ctx.mnt):
        console.startup_ok("Default shell changed to zsh for new users.")

    console.info_print("Downloading default user files to /etc/skel...")
    failed = fetch_skel_files(ctx.mnt, dry_run=ctx.dry_run)
    if failed:
        console.warning_print(f"Could not download: {', '.join(failed)}")
        warnings.append("some skel files could not be downloaded")
    else:
        console.startup_ok("Default user config files downloaded to /etc/skel.")

    setup_root(ctx)
    if ctx.config.username:
        setup_user(ctx)
    else:
        console.info_print("No user created. Only root account available.")

    if ctx.config.username and ctx.config.dotfiles_repo:
        if not restore_dotfiles(ctx):
            warnings.append("dotfiles restore failed")
    else:
        console.info_print("Dotfile restore skipped.")

    if warnings:
        raise AdvisoryError("; ".join(warnings))
