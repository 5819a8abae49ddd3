"""Error taxonomy shared by every installer stage."""

from __future__ import annotations

import enum
from typing import Sequence


class ErrorKind(enum.Enum):
    VALIDATION = "validation"
    PRECONDITION = "precondition"
    EXTERNAL_COMMAND = "external_command"
    ADVISORY = "advisory"


EXIT_CODES = {
    ErrorKind.VALIDATION: 2,
    ErrorKind.PRECONDITION: 3,
    ErrorKind.EXTERNAL_COMMAND: 4,
}


class InstallerError(RuntimeError):
    kind = ErrorKind.PRECONDITION

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(InstallerError):
    """Operator input was rejected; prompts re-ask on this."""

    kind = ErrorKind.VALIDATION


class PreconditionError(InstallerError):
    kind = ErrorKind.PRECONDITION


class ExternalCommandError(InstallerError):
    """A critical external command failed."""

    kind = ErrorKind.EXTERNAL_COMMAND

    def __init__(self, message: str, cmd: Sequence[str] | None = None, rc: int | None = None) -> None:
        super().__init__(message)
        self.cmd = list(cmd or [])
        self.rc = rc


class AdvisoryError(InstallerError):
    """Soft failure; the pipeline downgrades it to a warning."""

    kind = ErrorKind.ADVISORY


def exit_code_for(kind: ErrorKind | None) -> int:
    if kind is None:
        return 1
    return EXIT_CODES.get(kind, 1)
