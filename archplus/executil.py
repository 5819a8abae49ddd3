from __future__ import annotations

"""Subprocess wrapper, dry-run hook and the install log."""

import datetime as _dt
import os
import shlex
import shutil
import subprocess
import sys
import time
from typing import Sequence

from .paths import initial_log_path, target_log_path


LOG_PATH: str | None = None
LEVELS = {"TRACE": 10, "INFO": 20, "WARN": 30, "ERROR": 40, "NONE": 100}
LOG_LEVEL = os.environ.get("ARCHPLUS_LOG_LEVEL", "INFO").upper()
ECHO = False


def _timestamp() -> str:
    return _dt.datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _ensure_logger() -> str | None:
    global LOG_PATH
    if LOG_PATH:
        return LOG_PATH
    path = initial_log_path()
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
    except OSError:
        return None
    LOG_PATH = path
    return LOG_PATH


def resolve_log_path() -> str | None:
    """Return the active log path, creating its directory when possible."""

    return _ensure_logger()


def set_debug(enabled: bool) -> None:
    global ECHO, LOG_LEVEL
    ECHO = enabled
    if enabled:
        LOG_LEVEL = "TRACE"


def _write_line(line: str) -> None:
    path = _ensure_logger()
    if ECHO:
        print(f"[DEBUG] {line}", file=sys.stderr)
    if not path:
        return
    try:
        with open(path, "a", encoding="utf-8") as f:
            f.write(line + "\n")
    except OSError:
        pass


def log_msg(message: str) -> None:
    """Append one timestamped line to the install log."""

    _write_line(f"[{_timestamp()}] {message}")


def log(level: str, message: str) -> None:
    lvl = LEVELS.get(level.upper(), 100)
    cur = LEVELS.get(LOG_LEVEL, 100)
    if lvl < cur:
        return
    log_msg(message)


def trace(message: str) -> None:
    log("TRACE", message)


def log_block(title: str, text: str) -> None:
    log_msg(f"--- {title} ---")
    for line in (text or "").splitlines():
        _write_line(line)
    _write_line("-" * (len(title) + 8))


def log_start(version: str) -> str | None:
    path = _ensure_logger()
    if not path:
        return None
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write("========== ArchLinuxPlus Install Log ==========\n")
            f.write(f"Started on: {_dt.datetime.now().isoformat(timespec='seconds')}\n")
            f.write(f"Installer: {version}\n")
            f.write("===============================================\n\n")
    except OSError:
        return None
    return path


def relocate_log(mnt: str) -> str:
    """Move the log into the target tree; later lines append at the new path."""

    global LOG_PATH
    current = _ensure_logger()
    new_path = target_log_path(mnt)
    os.makedirs(os.path.dirname(new_path), exist_ok=True)
    if current and os.path.abspath(current) == os.path.abspath(new_path):
        return new_path
    if current and os.path.isfile(current):
        if os.path.exists(new_path):
            # the target may already hold a log; append ours to it
            with open(current, "r", encoding="utf-8") as src, open(new_path, "a", encoding="utf-8") as dst:
                dst.write(src.read())
            os.remove(current)
        else:
            shutil.move(current, new_path)
    LOG_PATH = new_path
    return new_path


class Result:
    def __init__(self, rc: int, out: str, err: str, duration: float):
        self.rc, self.out, self.err, self.duration = rc, out, err, duration

    @property
    def ok(self) -> bool:
        return self.rc == 0


def run(
    cmd: Sequence[str],
    check: bool = True,
    dry_run: bool = False,
    timeout: float | None = None,
    input: str | None = None,
    env: dict | None = None,
) -> Result:
    cmd_str = " ".join(shlex.quote(c) for c in cmd)
    # stdin is never logged, it carries passwords
    log("INFO", f"[CMD ] {cmd_str}")
    if dry_run:
        return Result(0, "DRY-RUN: " + cmd_str, "", 0.0)
    started = time.time()
    env2 = (env or os.environ).copy()
    proc = subprocess.run(
        list(cmd),
        capture_output=True,
        text=True,
        timeout=timeout,
        input=input,
        env=env2,
    )
    dur = time.time() - started
    log("INFO", f"[RC  ] {proc.returncode} ({dur:.1f}s) {cmd_str}")
    if proc.returncode != 0 or LOG_LEVEL == "TRACE":
        if proc.stdout:
            log_block("stdout", proc.stdout)
        if proc.stderr:
            log_block("stderr", proc.stderr)
    if check and proc.returncode != 0:
        raise subprocess.CalledProcessError(proc.returncode, list(cmd), proc.stdout, proc.stderr)
    return Result(proc.returncode, proc.stdout, proc.stderr, dur)


def udev_settle(dry_run: bool = False):
    run(["udevadm", "settle"], check=False, dry_run=dry_run)
