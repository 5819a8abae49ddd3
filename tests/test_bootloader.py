import pytest

from archplus import bootloader
from archplus.errors import AdvisoryError, ExternalCommandError, PreconditionError


@pytest.fixture
def bare_metal(fake_run):
    return fake_run.on("systemd-detect-virt", rc=1)


def _grub_efi(mnt):
    efi = mnt / "efi/EFI/GRUB/grubx64.efi"
    efi.parent.mkdir(parents=True)
    efi.write_bytes(b"MZ")
    return efi


def test_install_command_in_vm():
    assert "--no-nvram" in bootloader.grub_install_command("/mnt", in_vm=True)
    cmd = bootloader.grub_install_command("/mnt", in_vm=False)
    assert "--no-nvram" not in cmd
    assert "--efi-directory=/efi" in cmd and cmd[-1] == "--recheck"


def test_full_grub_setup(ctx, bare_metal, mnt):
    _grub_efi(mnt)
    bare_metal.on("luksUUID /dev/sda2", out="root-uuid\n")

    bootloader.setup_grub_bootloader(ctx)

    grub = (mnt / "etc/default/grub").read_text(encoding="utf-8")
    assert "GRUB_ENABLE_CRYPTODISK=y" in grub
    assert "cryptdevice=UUID=root-uuid:cryptroot" in grub
    assert (mnt / "efi/EFI/Boot/BOOTX64.EFI").read_bytes() == b"MZ"
    assert bare_metal.called("sbsign --key /etc/secureboot/keys/db.key")
    assert bare_metal.commands[-1].endswith("grub-mkconfig -o /boot/grub/grub.cfg")
    assert (mnt / "boot/grub/themes/arch-2K").is_dir()


def test_theme_failure_is_a_warning(ctx, bare_metal, mnt):
    _grub_efi(mnt)
    bare_metal.on("luksUUID", out="root-uuid\n").on("curl", rc=22)
    with pytest.raises(AdvisoryError):
        bootloader.setup_grub_bootloader(ctx)
    assert bare_metal.called("grub-mkconfig")


def test_grub_install_failure_is_fatal(ctx, bare_metal):
    bare_metal.on("luksUUID", out="root-uuid\n").on("grub-install", rc=1)
    with pytest.raises(ExternalCommandError):
        bootloader.setup_grub_bootloader(ctx)
    assert not bare_metal.called("grub-mkconfig")


def test_boot_targets_register_entry(ctx, bare_metal, mnt):
    _grub_efi(mnt)
    bare_metal.on("PKNAME /dev/sda2", out="sda\n").on("PARTNUM /dev/sda1", out="1\n")

    bootloader.setup_boot_targets(ctx)

    entry = [c.cmd for c in bare_metal.calls if "efibootmgr" in c.cmd][0]
    assert entry[entry.index("--disk") + 1] == "/dev/sda"
    assert entry[entry.index("--part") + 1] == "1"
    assert entry[entry.index("--loader") + 1] == "\\EFI\\GRUB\\grubx64.efi"
    assert (mnt / "efi/EFI/Boot/BOOTX64.EFI").exists()


def test_boot_targets_skip_entry_in_vm(ctx, fake_run, mnt):
    _grub_efi(mnt)
    bootloader.setup_boot_targets(ctx)
    assert not fake_run.called("efibootmgr")


def test_boot_targets_need_grub(ctx, bare_metal):
    with pytest.raises(PreconditionError):
        bootloader.setup_boot_targets(ctx)


def test_efibootmgr_failure_is_a_warning(ctx, bare_metal, mnt):
    _grub_efi(mnt)
    bare_metal.on("efibootmgr", rc=5)
    with pytest.raises(AdvisoryError):
        bootloader.setup_boot_targets(ctx)
