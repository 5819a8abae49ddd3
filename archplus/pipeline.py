"""Ordered stage executor: run until the first fatal outcome."""

from __future__ import annotations

import enum
import subprocess
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from . import console
from .errors import ErrorKind, InstallerError, exit_code_for
from .executil import log_msg, resolve_log_path


class OutcomeKind(enum.Enum):
    SUCCESS = "success"
    WARNING = "warning"
    FATAL = "fatal"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    message: str = ""
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def success(cls, message: str = "") -> "Outcome":
        return cls(OutcomeKind.SUCCESS, message)

    @classmethod
    def warning(cls, message: str) -> "Outcome":
        return cls(OutcomeKind.WARNING, message, ErrorKind.ADVISORY)

    @classmethod
    def fatal(cls, message: str, error_kind: ErrorKind | None = None) -> "Outcome":
        return cls(OutcomeKind.FATAL, message, error_kind)


class StageState(enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    WARNING = "warning"
    FATAL = "fatal"


class PipelineState(enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass
class Stage:
    name: str
    func: Callable[..., Optional[Outcome]]
    title: str = ""

    def __post_init__(self):
        if not self.title:
            self.title = self.name.replace("_", " ").capitalize()


@dataclass
class StageResult:
    name: str
    state: StageState
    message: str = ""


@dataclass
class PipelineReport:
    state: PipelineState = PipelineState.RUNNING
    results: List[StageResult] = field(default_factory=list)
    exit_code: int = 0

    @property
    def warnings(self) -> List[StageResult]:
        return [r for r in self.results if r.state is StageState.WARNING]

    @property
    def executed(self) -> List[str]:
        return [r.name for r in self.results]


def _command_failure(exc: subprocess.CalledProcessError) -> Outcome:
    cmd = exc.cmd if isinstance(exc.cmd, str) else " ".join(str(c) for c in exc.cmd)
    return Outcome.fatal(
        f"command failed (rc={exc.returncode}): {cmd}; see {resolve_log_path()}",
        ErrorKind.EXTERNAL_COMMAND,
    )


def run_stage(stage: Stage, ctx) -> Outcome:
    """Run one stage and classify whatever it returns or raises."""

    try:
        outcome = stage.func(ctx)
    except InstallerError as exc:
        if exc.kind is ErrorKind.ADVISORY:
            return Outcome.warning(exc.message)
        return Outcome.fatal(exc.message, exc.kind)
    except subprocess.CalledProcessError as exc:
        return _command_failure(exc)
    except subprocess.TimeoutExpired as exc:
        return Outcome.fatal(f"command timed out after {exc.timeout}s: {exc.cmd}", ErrorKind.EXTERNAL_COMMAND)
    except KeyboardInterrupt:
        return Outcome.fatal("interrupted by operator", ErrorKind.PRECONDITION)
    except Exception as exc:  # noqa: BLE001
        return Outcome.fatal(f"{type(exc).__name__}: {exc}")
    if outcome is None:
        return Outcome.success()
    return outcome


def run_pipeline(stages: Sequence[Stage], ctx) -> PipelineReport:
    report = PipelineReport()
    for stage in stages:
        log_msg(f"[STAGE] {stage.name} running")
        console.startup_print(stage.title)
        outcome = run_stage(stage, ctx)
        if outcome.kind is OutcomeKind.SUCCESS:
            state = StageState.SUCCESS
            console.startup_ok(stage.title + (f": {outcome.message}" if outcome.message else ""))
        elif outcome.kind is OutcomeKind.WARNING:
            state = StageState.WARNING
            console.startup_warn(f"{stage.title}: {outcome.message}")
        else:
            state = StageState.FATAL
            console.startup_fail(f"{stage.title}: {outcome.message}")
        log_msg(f"[STAGE] {stage.name} {state.value}" + (f": {outcome.message}" if outcome.message else ""))
        report.results.append(StageResult(stage.name, state, outcome.message))
        if state is StageState.FATAL:
            report.state = PipelineState.ABORTED
            report.exit_code = exit_code_for(outcome.error_kind)
            console.error_print(f"Installation aborted at '{stage.title}'. See {resolve_log_path()} for details.")
            return report
    report.state = PipelineState.COMPLETED
    report.exit_code = 0
    return report
