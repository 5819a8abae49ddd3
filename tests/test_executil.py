import subprocess
from types import SimpleNamespace

import pytest

from archplus import executil


def test_dry_run_logs_but_does_not_execute(monkeypatch, isolated_log):
    def boom(*args, **kwargs):
        raise AssertionError("subprocess must not run in dry-run mode")

    monkeypatch.setattr(executil.subprocess, "run", boom)
    res = executil.run(["parted", "--script", "/dev/sda", "mklabel", "gpt"], dry_run=True)
    assert res.rc == 0
    assert res.out.startswith("DRY-RUN:")
    assert "[CMD ] parted --script /dev/sda mklabel gpt" in isolated_log.read_text(encoding="utf-8")


def test_failure_raises_when_checked(monkeypatch, isolated_log):
    monkeypatch.setattr(
        executil.subprocess,
        "run",
        lambda *args, **kwargs: SimpleNamespace(returncode=2, stdout="", stderr="device busy\n"),
    )
    with pytest.raises(subprocess.CalledProcessError):
        executil.run(["mkfs.btrfs", "-f", "/dev/mapper/cryptroot"])

    res = executil.run(["mkfs.btrfs", "-f", "/dev/mapper/cryptroot"], check=False)
    assert res.rc == 2
    assert not res.ok
    text = isolated_log.read_text(encoding="utf-8")
    assert "[RC  ] 2" in text
    assert "device busy" in text


def test_stdin_is_not_logged(monkeypatch, isolated_log):
    seen = {}

    def fake(cmd, **kwargs):
        seen.update(kwargs)
        return SimpleNamespace(returncode=0, stdout="", stderr="")

    monkeypatch.setattr(executil.subprocess, "run", fake)
    executil.run(["cryptsetup", "open", "/dev/sda2", "cryptroot", "--key-file", "-"], input="hunter2")
    assert seen["input"] == "hunter2"
    assert "hunter2" not in isolated_log.read_text(encoding="utf-8")


def test_log_level_filters_info(monkeypatch, isolated_log):
    monkeypatch.setattr(executil, "LOG_LEVEL", "WARN")
    executil.log("INFO", "quiet line")
    executil.log("ERROR", "loud line")
    text = isolated_log.read_text(encoding="utf-8")
    assert "quiet line" not in text
    assert "loud line" in text


def test_log_lines_are_timestamped(isolated_log):
    executil.log_msg("hello")
    line = isolated_log.read_text(encoding="utf-8").strip()
    assert line.startswith("[") and line.endswith("] hello")
    assert len(line.split("]")[0]) == len("[YYYY-MM-DD HH:MM:SS")


def test_relocation_keeps_order(tmp_path, isolated_log):
    mnt = tmp_path / "mnt"
    executil.log_start("v1.0.0 (commit: abc1234)")
    executil.log_msg("before relocation")
    new_path = executil.relocate_log(str(mnt))
    executil.log_msg("after relocation")

    assert not isolated_log.exists()
    text = (mnt / "var/log/archinstall.log").read_text(encoding="utf-8")
    assert new_path.endswith("var/log/archinstall.log")
    assert text.index("ArchLinuxPlus Install Log") < text.index("before relocation") < text.index("after relocation")
    assert executil.resolve_log_path() == new_path


def test_relocation_appends_to_existing_target(tmp_path, isolated_log):
    mnt = tmp_path / "mnt"
    target = mnt / "var/log/archinstall.log"
    target.parent.mkdir(parents=True)
    target.write_text("pacstrap output\n", encoding="utf-8")
    executil.log_msg("ours")
    executil.relocate_log(str(mnt))
    text = target.read_text(encoding="utf-8")
    assert text.startswith("pacstrap output\n")
    assert "ours" in text


def test_debug_echoes_to_stderr(monkeypatch, capsys):
    monkeypatch.setattr(executil, "ECHO", False)
    executil.set_debug(True)
    executil.log_msg("visible")
    assert "[DEBUG]" in capsys.readouterr().err
    assert executil.LOG_LEVEL == "TRACE"
