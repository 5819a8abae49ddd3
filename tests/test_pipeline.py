import subprocess

from archplus.errors import AdvisoryError, ExternalCommandError, PreconditionError, ValidationError
from archplus.pipeline import (
    Outcome,
    OutcomeKind,
    PipelineState,
    Stage,
    StageState,
    run_pipeline,
    run_stage,
)


def _stages(calls, failing=None, exc=None):
    def make(name):
        def func(ctx):
            calls.append(name)
            if name == failing:
                raise exc

        return Stage(name, func)

    return [make(f"s{i}") for i in range(1, 6)]


def test_fatal_stops_the_pipeline():
    calls = []
    report = run_pipeline(_stages(calls, "s3", ExternalCommandError("mkfs failed")), ctx=None)
    assert calls == ["s1", "s2", "s3"]
    assert report.executed == ["s1", "s2", "s3"]
    assert report.state is PipelineState.ABORTED
    assert report.exit_code == 4
    assert report.results[-1].state is StageState.FATAL


def test_warning_does_not_stop_the_pipeline():
    calls = []
    report = run_pipeline(_stages(calls, "s2", AdvisoryError("theme download failed")), ctx=None)
    assert calls == ["s1", "s2", "s3", "s4", "s5"]
    assert report.state is PipelineState.COMPLETED
    assert report.exit_code == 0
    assert [r.name for r in report.warnings] == ["s2"]


def test_exit_codes_follow_error_kind():
    cases = [
        (ValidationError("bad"), 2),
        (PreconditionError("aborted"), 3),
        (ExternalCommandError("boom"), 4),
        (subprocess.CalledProcessError(1, ["parted"]), 4),
        (RuntimeError("unexpected"), 1),
    ]
    for exc, code in cases:
        report = run_pipeline(_stages([], "s1", exc), ctx=None)
        assert report.exit_code == code, exc


def test_returned_outcome_is_respected():
    stage = Stage("custom", lambda ctx: Outcome.fatal("nope"))
    outcome = run_stage(stage, None)
    assert outcome.kind is OutcomeKind.FATAL
    assert run_stage(Stage("quiet", lambda ctx: None), None).kind is OutcomeKind.SUCCESS


def test_timeout_is_fatal():
    def slow(ctx):
        raise subprocess.TimeoutExpired(["cryptsetup"], 60)

    outcome = run_stage(Stage("slow", slow), None)
    assert outcome.kind is OutcomeKind.FATAL
    assert "timed out" in outcome.message


def test_stage_title_defaults_to_name():
    assert Stage("gen_fstab", lambda ctx: None).title == "Gen fstab"


def test_stage_transitions_are_logged(isolated_log):
    run_pipeline([Stage("only", lambda ctx: None)], ctx=None)
    text = isolated_log.read_text(encoding="utf-8")
    assert "[STAGE] only running" in text
    assert "[STAGE] only success" in text


def test_every_stage_closes_with_a_status_line(isolated_log):
    def declined(ctx):
        raise PreconditionError("declined")

    stages = _stages([], "s2", AdvisoryError("theme download failed"))[:3]
    stages.append(Stage("s4", declined))
    run_pipeline(stages, ctx=None)
    log = isolated_log.read_text(encoding="utf-8")
    assert "[ OK ] S1" in log
    assert "[WARN] S2: theme download failed" in log
    assert "[ OK ] S3" in log
    assert "[FAIL] S4: declined" in log
