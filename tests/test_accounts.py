import os
import stat

import pytest

from archplus import accounts
from archplus.errors import AdvisoryError, ExternalCommandError


def test_create_users_with_regular_user(ctx, fake_run, mnt):
    (mnt / "etc/default").mkdir(parents=True)
    (mnt / "etc/default/useradd").write_text("GROUP=users\nSHELL=/bin/bash\n", encoding="utf-8")

    accounts.create_users(ctx)

    assert "SHELL=/bin/zsh" in (mnt / "etc/default/useradd").read_text(encoding="utf-8")
    chpasswd = [c.input for c in fake_run.calls if c.cmd[-1] == "chpasswd"]
    assert chpasswd == ["root:hunter2\n", "alice:hunter2\n"]
    assert fake_run.called("useradd -m -G wheel -s /bin/zsh alice")
    assert fake_run.called("chsh -s /bin/zsh root")

    sudoers = mnt / "etc/sudoers.d/alice"
    assert sudoers.read_text(encoding="utf-8") == "alice ALL=(ALL) ALL\n"
    assert stat.S_IMODE(os.stat(sudoers).st_mode) == 0o440
    assert not fake_run.called("stow")


def test_passwords_never_reach_argv(ctx, fake_run):
    accounts.create_users(ctx)
    assert all("hunter2" not in line for line in fake_run.commands)


def test_skel_download_targets(ctx, fake_run, mnt):
    accounts.create_users(ctx)
    curls = [c.cmd for c in fake_run.calls if c.cmd[0] == "curl"]
    assert len(curls) == len(accounts.SKEL_FILES)
    assert curls[0][2] == str(mnt / "etc/skel/.zshrc")
    assert curls[0][3].endswith("/etc/skel/.zshrc")
    assert (mnt / "etc/skel/.cache/oh-my-posh/themes").is_dir()


def test_failed_skel_download_is_a_warning(ctx, fake_run):
    fake_run.on("curl", rc=22)
    with pytest.raises(AdvisoryError):
        accounts.create_users(ctx)
    assert fake_run.called("useradd")


def test_useradd_failure_is_fatal(ctx, fake_run):
    fake_run.on("useradd", rc=9)
    with pytest.raises(ExternalCommandError):
        accounts.create_users(ctx)


def test_root_only(ctx, fake_run, mnt):
    ctx.config.username = None
    accounts.create_users(ctx)
    assert not fake_run.called("useradd")
    assert not (mnt / "etc/sudoers.d").exists()


def test_dotfiles_restore(ctx, fake_run):
    ctx.config.dotfiles_repo = "https://example.com/dots.git"
    accounts.create_users(ctx)
    script = [c.cmd[-1] for c in fake_run.calls if c.cmd[2:4] == ["/bin/bash", "-c"]]
    assert len(script) == 1
    assert "git clone --depth=1 'https://example.com/dots.git' /home/alice/.dotfiles" in script[0]
    assert "stow */" in script[0]
