"""Status lines and the validated prompt used by every interactive stage."""

from __future__ import annotations

import getpass
import shutil
import sys
from typing import Callable, Optional, Sequence, TypeVar

from .errors import ValidationError
from .executil import log_msg

RESET = "\033[0m"
BOLD = "\033[1m"
DARKGRAY = "\033[90m"
LIGHTGRAY = "\033[37m"
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
CYAN = "\033[96m"

T = TypeVar("T")

# swapped out by tests
read_line: Callable[[str], str] = input
read_secret: Callable[[str], str] = getpass.getpass


def _out(text: str, end: str = "\n") -> None:
    sys.stdout.write(text + end)
    sys.stdout.flush()


def draw_line(char: str = "-") -> None:
    width = shutil.get_terminal_size((80, 24)).columns
    _out(f"{DARKGRAY}{char * width}{RESET}")


def section_header(title: str) -> None:
    width = shutil.get_terminal_size((80, 24)).columns
    _out("")
    draw_line()
    _out(f"{BOLD}{title.center(width).rstrip()}{RESET}")
    draw_line()
    log_msg(f"== {title} ==")


def startup_print(message: str) -> None:
    _out(f"{DARKGRAY}[      ]{RESET} {LIGHTGRAY}{message}{RESET}", end="")


def startup_ok(message: str) -> None:
    _out(f"\r{DARKGRAY}[{GREEN} OK {DARKGRAY}]{RESET} {LIGHTGRAY}{message}{RESET}")
    log_msg(f"[ OK ] {message}")


def startup_fail(message: str) -> None:
    _out(f"\r{DARKGRAY}[{RED}FAIL{DARKGRAY}]{RESET} {LIGHTGRAY}{message}{RESET}")
    log_msg(f"[FAIL] {message}")


def startup_warn(message: str) -> None:
    _out(f"\r{DARKGRAY}[{YELLOW}WARN{DARKGRAY}]{RESET} {LIGHTGRAY}{message}{RESET}")
    log_msg(f"[WARN] {message}")


def info_print(message: str) -> None:
    _out(f"\r{DARKGRAY}[{CYAN}INFO{DARKGRAY}]{RESET} {LIGHTGRAY}{message}{RESET}")
    log_msg(f"[INFO] {message}")


def warning_print(message: str) -> None:
    _out(f"\r{DARKGRAY}[ {YELLOW}!! {DARKGRAY}]{RESET} {LIGHTGRAY}{message}{RESET}")
    log_msg(f"[WARN] {message}")


def error_print(message: str) -> None:
    _out(f"\r{DARKGRAY}[ {RED}!! {DARKGRAY}]{RESET} {LIGHTGRAY}{message}{RESET}")
    log_msg(f"[ERR ] {message}")


def plain(message: str = "") -> None:
    _out(message)


def _input_label(prompt: str) -> str:
    return f"{DARKGRAY}[ {YELLOW}¿? {DARKGRAY}]{RESET} {LIGHTGRAY}{prompt}: {RESET}"


def ask(
    prompt: str,
    validate: Callable[[str], T],
    default: Optional[str] = None,
    secret: bool = False,
) -> T:
    """Read until ``validate`` accepts the answer.

    Empty input is replaced with ``default`` when one is given. The
    validator either returns the parsed value or raises ``ValidationError``,
    in which case the message is shown and the question is asked again.
    """

    reader = read_secret if secret else read_line
    while True:
        raw = reader(_input_label(prompt))
        raw = (raw or "").strip() if not secret else (raw or "")
        if raw == "" and default is not None:
            raw = default
        try:
            return validate(raw)
        except ValidationError as exc:
            warning_print(exc.message)


def ask_text(prompt: str, default: str = "") -> str:
    return ask(prompt, lambda raw: raw, default=default)


def ask_yes_no(prompt: str, default: bool = False) -> bool:
    def _parse(raw: str) -> bool:
        value = raw.lower()
        if value in ("y", "yes"):
            return True
        if value in ("n", "no"):
            return False
        return default

    return ask(prompt, _parse, default="y" if default else "n")


def validate_password_pair(first: str, second: str) -> str:
    if first != second:
        raise ValidationError("Passwords do not match. Please try again.")
    if not first:
        raise ValidationError("Password cannot be empty. Please try again.")
    return first


def ask_confirmed_secret(label: str) -> str:
    """Ask twice for a secret; accepted iff both entries match and are non-empty."""

    while True:
        first = read_secret(_input_label(f"Enter {label}"))
        second = read_secret(_input_label(f"Confirm {label}"))
        try:
            return validate_password_pair(first, second)
        except ValidationError as exc:
            warning_print(exc.message)


def validate_disk_index(raw: str, count: int) -> int:
    """Turn a 1-based disk number into a 0-based index."""

    if not (raw.isascii() and raw.isdigit()):
        raise ValidationError("Invalid selection. Please try again.")
    idx = int(raw)
    if idx < 1 or idx > count:
        raise ValidationError(f"Invalid selection. Please choose 1-{count}.")
    return idx - 1


def validate_menu_choice(raw: str, variants: Sequence[T]) -> T:
    return variants[validate_disk_index(raw, len(variants))]


def choose(prompt: str, options: Sequence[T], labels: Sequence[str], default: int = 1) -> T:
    for i, label in enumerate(labels, start=1):
        plain(f"  {i}) {label}")
    plain()
    return ask(
        f"{prompt} [1-{len(options)}] (default: {default})",
        lambda raw: validate_menu_choice(raw, options),
        default=str(default),
    )
