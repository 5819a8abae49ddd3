import pytest

from archplus import initramfs
from archplus.errors import ExternalCommandError, PreconditionError


def _modules(mnt, *names):
    for name in names:
        (mnt / "lib/modules" / name).mkdir(parents=True)


def test_detect_kernel_version(mnt):
    assert initramfs.detect_kernel_version(str(mnt)) == ""
    _modules(mnt, "extramodules-6.9", "6.9.7-arch1-1")
    assert initramfs.detect_kernel_version(str(mnt)) == "6.9.7-arch1-1"


def test_missing_modules_is_a_precondition(ctx, fake_run):
    with pytest.raises(PreconditionError):
        initramfs.generate_initramfs_with_mkinitcpio(ctx)
    assert not fake_run.called("mkinitcpio")


def test_generates_with_preset(ctx, fake_run, mnt):
    _modules(mnt, "6.9.7-arch1-1")
    (mnt / "etc").mkdir()
    (mnt / "etc/mkinitcpio.conf").write_text("HOOKS=(base udev)\n", encoding="utf-8")

    initramfs.generate_initramfs_with_mkinitcpio(ctx)

    assert "encrypt" in (mnt / "etc/mkinitcpio.conf").read_text(encoding="utf-8")
    call = fake_run.calls[-1]
    assert call.cmd[-2:] == ["mkinitcpio", "-P"]
    assert call.timeout is None


def test_mkinitcpio_failure_is_fatal(ctx, fake_run, mnt):
    _modules(mnt, "6.9.7-arch1-1")
    (mnt / "etc").mkdir()
    (mnt / "etc/mkinitcpio.conf").write_text("HOOKS=(base udev)\n", encoding="utf-8")
    fake_run.on("mkinitcpio -P", rc=1)
    with pytest.raises(ExternalCommandError):
        initramfs.generate_initramfs_with_mkinitcpio(ctx)


def test_dry_run_without_tree(ctx, fake_run):
    ctx.flags.dry_run = True
    initramfs.generate_initramfs_with_mkinitcpio(ctx)
    assert fake_run.calls[-1].dry_run is True
