from archplus import cli
from archplus.errors import ValidationError
from archplus.pipeline import Stage


def test_version_flag(monkeypatch, capsys):
    monkeypatch.setattr(cli, "version_string", lambda: "v1.0.0 (commit: abc1234)")
    assert cli.main(["--version"]) == 0
    assert "v1.0.0 (commit: abc1234)" in capsys.readouterr().out


def test_stage_order():
    names = [stage.name for stage in cli.build_stages()]
    assert len(names) == len(set(names))
    assert names[0] == "setup_keymap_and_locale"
    assert names.index("confirm_installation") < names.index("wipe_disk")
    assert names.index("install_base_system") < names.index("move_logfile_to_mnt")
    assert names.index("setup_cmdline_file") < names.index("generate_initramfs")
    assert names.index("setup_grub_bootloader") < names.index("setup_boot_targets")
    assert names[-2:] == ["verify_boot_integrity", "final_message"]


def test_main_returns_fatal_exit_code(monkeypatch, tmp_path, isolated_log):
    seen = []

    def first(ctx):
        seen.append(ctx.dry_run)

    def second(ctx):
        raise ValidationError("bad answer")

    monkeypatch.setenv("ARCHPLUS_MNT", str(tmp_path / "mnt"))
    monkeypatch.setattr(cli, "version_string", lambda: "v1.0.0 (commit: unknown)")
    monkeypatch.setattr(cli, "build_stages", lambda: [Stage("first", first), Stage("second", second)])

    assert cli.main(["--dry-run"]) == 2
    assert seen == [True]
    log = isolated_log.read_text(encoding="utf-8")
    assert "[STAGE] second fatal: bad answer" in log
    assert "pipeline aborted exit=2" in log


def test_main_completes(monkeypatch, tmp_path):
    monkeypatch.setenv("ARCHPLUS_MNT", str(tmp_path / "mnt"))
    monkeypatch.setattr(cli, "version_string", lambda: "v1.0.0 (commit: unknown)")
    monkeypatch.setattr(cli, "build_stages", lambda: [Stage("only", lambda ctx: None)])
    assert cli.main([]) == 0
