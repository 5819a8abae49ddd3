from archplus import errors
from archplus.errors import ErrorKind


def test_kinds_map_to_exit_codes():
    assert errors.exit_code_for(errors.ValidationError("x").kind) == 2
    assert errors.exit_code_for(errors.PreconditionError("x").kind) == 3
    assert errors.exit_code_for(errors.ExternalCommandError("x").kind) == 4
    assert errors.exit_code_for(ErrorKind.ADVISORY) == 1
    assert errors.exit_code_for(None) == 1


def test_external_command_error_keeps_command():
    exc = errors.ExternalCommandError("boom", ("sgdisk", "--zap-all"), 2)
    assert exc.cmd == ["sgdisk", "--zap-all"]
    assert exc.rc == 2
    assert str(exc) == "boom" and exc.message == "boom"
    assert isinstance(exc, errors.InstallerError)
