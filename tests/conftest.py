import subprocess
from types import SimpleNamespace

import pytest

from archplus import (
    accounts,
    base_system,
    bootloader,
    btrfs,
    console,
    devices,
    executil,
    finalize,
    initramfs,
    luks,
    partitioning,
    prompts,
    safety,
    secureboot,
    snapper,
    verification,
)
from archplus.executil import Result
from archplus.model import Context, Flags, InstallConfig

_RUN_USERS = (
    accounts,
    base_system,
    bootloader,
    btrfs,
    devices,
    executil,
    finalize,
    initramfs,
    luks,
    partitioning,
    prompts,
    safety,
    secureboot,
    snapper,
    verification,
)


class FakeRun:
    """Stand-in for ``executil.run``; answers by substring of the joined command."""

    def __init__(self):
        self.calls = []
        self._rules = []

    def on(self, needle, rc=0, out="", err=""):
        self._rules.append((needle, Result(rc, out, err, 0.0)))
        return self

    @property
    def commands(self):
        return [" ".join(call.cmd) for call in self.calls]

    def called(self, needle):
        return any(needle in line for line in self.commands)

    def __call__(self, cmd, check=True, dry_run=False, timeout=None, input=None, env=None):
        cmd = [str(c) for c in cmd]
        self.calls.append(SimpleNamespace(cmd=cmd, input=input, dry_run=dry_run, timeout=timeout))
        line = " ".join(cmd)
        result = Result(0, "", "", 0.0)
        for needle, res in reversed(self._rules):
            if needle in line:
                result = res
                break
        if check and result.rc != 0:
            raise subprocess.CalledProcessError(result.rc, cmd, result.out, result.err)
        return result


@pytest.fixture(autouse=True)
def isolated_log(tmp_path, monkeypatch):
    log_path = tmp_path / "live" / "archinstall.log"
    monkeypatch.setenv("ARCHPLUS_LOG", str(log_path))
    monkeypatch.setattr(executil, "LOG_PATH", None)
    monkeypatch.setattr(executil, "ECHO", False)
    monkeypatch.setattr(executil, "LOG_LEVEL", "INFO")
    return log_path


@pytest.fixture
def fake_run(monkeypatch):
    fake = FakeRun()
    for module in _RUN_USERS:
        monkeypatch.setattr(module, "run", fake)
    return fake


@pytest.fixture
def mnt(tmp_path):
    root = tmp_path / "mnt"
    root.mkdir()
    return root


@pytest.fixture
def ctx(mnt):
    config = InstallConfig(
        disk="/dev/sda",
        root_size_gib=40,
        luks_password="hunter2",
        root_password="hunter2",
        user_password="hunter2",
        username="alice",
        efi_partition="/dev/sda1",
        root_partition="/dev/sda2",
        home_partition="/dev/sda3",
        microcode="intel-ucode",
    )
    return Context(config=config, flags=Flags(mnt=str(mnt)))


@pytest.fixture
def answers(monkeypatch):
    """Script the operator: ``answers(lines=[...], secrets=[...])``."""

    def _script(lines=(), secrets=()):
        line_iter = iter(lines)
        secret_iter = iter(secrets)
        monkeypatch.setattr(console, "read_line", lambda prompt="": next(line_iter))
        monkeypatch.setattr(console, "read_secret", lambda prompt="": next(secret_iter))

    return _script
