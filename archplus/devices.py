"""Block device discovery and host probing."""
from __future__ import annotations

from .executil import run, trace

_EXCLUDED = ("boot", "rpmb", "loop")


def list_disks() -> list[str]:
    """Return ``lsblk -dpno NAME,SIZE,MODEL`` lines for candidate whole disks."""

    r = run(["lsblk", "-dpno", "NAME,SIZE,MODEL"], check=True)
    disks = []
    for line in (r.out or "").splitlines():
        if not line.strip():
            continue
        if any(word in line for word in _EXCLUDED):
            continue
        disks.append(line.rstrip())
    trace(f"devices.list_disks found={len(disks)}")
    return disks


def disk_name(line: str) -> str:
    return line.split()[0]


def disk_size_gib(disk: str) -> int:
    r = run(["lsblk", "-dnbo", "SIZE", disk], check=True)
    text = (r.out or "").strip().splitlines()
    if not text:
        raise ValueError(f"lsblk reported no size for {disk}")
    return int(text[0].strip()) // (1024 ** 3)


def layout_text(disk: str) -> str:
    r = run(["lsblk", "-p", "-e7", "-o", "NAME,SIZE,FSTYPE,TYPE,MOUNTPOINT,LABEL,UUID", disk], check=False)
    return r.out or ""


def partition_path(disk: str, index: int) -> str:
    # NVMe and MMC need a ``p`` separator (nvme0n1p1), sda does not
    base = disk.rstrip("/") or disk
    suffix = "p" if base[-1:].isdigit() else ""
    return f"{base}{suffix}{index}"


def parent_disk(partition: str) -> str:
    r = run(["lsblk", "-no", "PKNAME", partition], check=False)
    name = (r.out or "").strip().splitlines()
    return f"/dev/{name[0].strip()}" if name and name[0].strip() else ""


def partition_number(partition: str) -> str:
    r = run(["lsblk", "-no", "PARTNUM", partition], check=False)
    lines = (r.out or "").strip().splitlines()
    return lines[0].strip() if lines else ""


def is_virtual_machine() -> bool:
    r = run(["systemd-detect-virt", "--quiet", "--vm"], check=False)
    return r.rc == 0


def detect_microcode(cpuinfo_path: str = "/proc/cpuinfo") -> tuple[str, bool]:
    """Return (package, recognised) for the host CPU vendor."""

    try:
        with open(cpuinfo_path, "r", encoding="utf-8", errors="ignore") as fh:
            text = fh.read()
    except OSError:
        text = ""
    vendor = ""
    for line in text.splitlines():
        if line.startswith("vendor_id"):
            vendor = line.split(":", 1)[-1].strip()
            break
    if vendor == "AuthenticAMD":
        return "amd-ucode", True
    if vendor == "GenuineIntel":
        return "intel-ucode", True
    return "amd-ucode", False


def list_keymaps() -> list[str]:
    r = run(["localectl", "list-keymaps"], check=False)
    return [line.strip() for line in (r.out or "").splitlines() if line.strip()]


def list_locales(locale_gen: str = "/etc/locale.gen") -> list[str]:
    locales = []
    try:
        with open(locale_gen, "r", encoding="utf-8", errors="ignore") as fh:
            for line in fh:
                if "UTF-8" not in line:
                    continue
                fields = line.lstrip("#").split()
                if fields:
                    locales.append(fields[0])
    except OSError:
        return []
    return locales
