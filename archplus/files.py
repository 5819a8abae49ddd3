"""Small file helpers for writing configuration into the target tree."""
from __future__ import annotations

import os
import re
from pathlib import Path


def write_file(path: str | Path, content: str, mode: int = 0o644) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with open(tmp_path, "w", encoding="utf-8") as fh:
        fh.write(content)
        try:
            fh.flush()
            os.fsync(fh.fileno())
        except OSError:
            pass
    os.replace(tmp_path, path)
    os.chmod(path, mode)


def append_file(path: str | Path, content: str) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as fh:
        fh.write(content)


def read_text(path: str | Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return ""


def set_assignment(text: str, key: str, value: str, commented_ok: bool = True) -> str:
    """Set ``KEY=value`` in shell-style config text.

    A live assignment is replaced in place; failing that, a commented-out
    ``#KEY=`` line is; failing that, the line is appended. Later live
    duplicates of the key are dropped.
    """

    line = f"{key}={value}"
    live = re.compile(r"^" + re.escape(key) + r"=.*$", re.MULTILINE)
    m = live.search(text)
    if m is None and commented_ok:
        m = re.compile(r"^#" + re.escape(key) + r"=.*$", re.MULTILINE).search(text)
    if m is not None:
        dupes = re.compile(r"^" + re.escape(key) + r"=.*\n?", re.MULTILINE)
        return text[: m.start()] + line + dupes.sub("", text[m.end():])
    out = text
    if out and not out.endswith("\n"):
        out += "\n"
    return out + line + "\n"


def uncomment(text: str, pattern: str) -> str:
    """Strip a leading ``#`` from lines matching ``pattern``."""

    rx = re.compile(r"^#\s*(" + pattern + r".*)$", re.MULTILINE)
    return rx.sub(lambda m: m.group(1), text)
