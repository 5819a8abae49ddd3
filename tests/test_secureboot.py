import os
import stat

import pytest

from archplus import secureboot
from archplus.errors import AdvisoryError, ExternalCommandError


def test_keys_are_generated_and_locked_down(ctx, fake_run, mnt):
    keys = mnt / "etc/secureboot/keys"
    keys.mkdir(parents=True)
    for stem in ("PK", "KEK", "db"):
        (keys / f"{stem}.key").write_text("key", encoding="utf-8")

    secureboot.setup_secureboot_structure(ctx)

    openssl = [c.cmd for c in fake_run.calls if "openssl" in c.cmd]
    assert len(openssl) == 3
    for cmd in openssl:
        assert "rsa:4096" in cmd
        assert cmd[cmd.index("-days") + 1] == "3650"
    assert openssl[2][openssl[2].index("-keyout") + 1] == "/etc/secureboot/keys/db.key"
    for key in keys.glob("*.key"):
        assert stat.S_IMODE(os.stat(key).st_mode) == 0o600


def test_keygen_failure_is_fatal(ctx, fake_run):
    fake_run.on("CN=Key Exchange Key", rc=1)
    with pytest.raises(ExternalCommandError):
        secureboot.setup_secureboot_structure(ctx)


def test_pacman_hook_and_script(ctx, mnt):
    secureboot.setup_grub_pacman_hook(ctx)
    hook = (mnt / "etc/pacman.d/hooks/99-grub-sign.hook").read_text(encoding="utf-8")
    assert "Target = grub" in hook
    assert "When = PostTransaction" in hook
    assert "Exec = /usr/local/bin/resign-grub" in hook

    script = mnt / "usr/local/bin/resign-grub"
    text = script.read_text(encoding="utf-8")
    assert text.startswith("#!/bin/bash")
    assert 'sbsign --key "$KEY" --cert "$CERT"' in text
    assert "sbverify" in text
    assert os.access(script, os.X_OK)


def test_resign_timer(ctx, fake_run, mnt):
    secureboot.setup_grub_resign_timer(ctx)
    timer = (mnt / "etc/systemd/system/grub-resign.timer").read_text(encoding="utf-8")
    service = (mnt / "etc/systemd/system/grub-resign.service").read_text(encoding="utf-8")
    assert "OnBootSec=10min" in timer and "OnUnitActiveSec=1d" in timer
    assert "Persistent=true" in timer and "WantedBy=timers.target" in timer
    assert "Type=oneshot" in service
    assert fake_run.called("systemctl enable grub-resign.timer")
    assert (mnt / "usr/local/bin/resign-grub").exists()


def test_timer_enable_failure_is_a_warning(ctx, fake_run):
    fake_run.on("enable grub-resign.timer", rc=1)
    with pytest.raises(AdvisoryError):
        secureboot.setup_grub_resign_timer(ctx)
