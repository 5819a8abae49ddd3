from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional

from .paths import mount_root


class Kernel(enum.Enum):
    STABLE = ("linux", "Stable   - Vanilla Linux kernel with Arch Linux patches (recommended)")
    ZEN = ("linux-zen", "Zen      - Optimized for desktop usage (low latency)")
    HARDENED = ("linux-hardened", "Hardened - Security-focused Linux kernel")
    LTS = ("linux-lts", "LTS      - Long-term support Linux kernel")

    def __init__(self, package: str, label: str):
        self.package = package
        self.label = label

    @property
    def headers(self) -> str:
        return f"{self.package}-headers"

    @property
    def initramfs_image(self) -> str:
        return f"initramfs-{self.package}.img"

    @property
    def initramfs_fallback(self) -> str:
        return f"initramfs-{self.package}-fallback.img"


class Editor(enum.Enum):
    NANO = ("nano", "nano", "Nano   - Simple and beginner-friendly (recommended)")
    NEOVIM = ("neovim", "nvim", "Neovim - Modern Vim with Lua integration")
    VIM = ("vim", "vim", "Vim    - Classic and powerful editor")
    MICRO = ("micro", "micro", "Micro  - Simple, easy-to-use terminal editor")

    def __init__(self, package: str, binary: str, label: str):
        self.package = package
        self.binary = binary
        self.label = label


class NetworkStack(enum.Enum):
    NETWORK_MANAGER = (
        ("networkmanager",),
        ("NetworkManager.service",),
        "NetworkManager  - Universal utility (WiFi + Ethernet, recommended for desktop)",
    )
    IWD = (
        ("iwd",),
        ("iwd.service", "dhcpcd.service"),
        "IWD              - Simple Wi-Fi only (by Intel, built-in DHCP)",
    )
    WPA_SUPPLICANT = (
        ("wpa_supplicant", "dhcpcd"),
        ("wpa_supplicant@.service", "dhcpcd.service"),
        "wpa_supplicant   - Wi-Fi only (requires dhcpcd separately)",
    )
    DHCPCD = (
        ("dhcpcd",),
        ("dhcpcd.service",),
        "dhcpcd           - Basic DHCP client (Ethernet or VMs)",
    )
    NONE = ((), (), "None             - (Manual setup later - for advanced users)")

    def __init__(self, packages: tuple, services: tuple, label: str):
        self.packages = packages
        self.services = services
        self.label = label


class GrubTheme(enum.Enum):
    ARCH_2K = ("arch-2K", "2560x1440", "2K (2560x1440)")
    ARCH_1080P = ("arch-1080p", "1920x1080", "1080p (1920x1080)")

    def __init__(self, directory: str, gfxmode: str, label: str):
        self.directory = directory
        self.gfxmode = gfxmode
        self.label = label

    @property
    def archive(self) -> str:
        return f"{self.directory}.zip"


@dataclass
class Flags:
    debug: bool = False
    dry_run: bool = False
    mnt: str = field(default_factory=mount_root)


@dataclass
class InstallConfig:
    disk: Optional[str] = None
    secure_wipe: bool = False
    separate_home: bool = True
    root_size_gib: Optional[int] = None

    luks_password: Optional[str] = None
    root_password: Optional[str] = None
    user_password: Optional[str] = None
    username: Optional[str] = None
    dotfiles_repo: Optional[str] = None

    keymap: str = "dk"
    locale: str = "en_DK.UTF-8"
    hostname: str = "archlinux"
    kernel: Kernel = Kernel.STABLE
    editor: Editor = Editor.NANO
    network: NetworkStack = NetworkStack.NETWORK_MANAGER
    grub_theme: GrubTheme = GrubTheme.ARCH_2K

    # derived by later stages, each written once
    efi_partition: Optional[str] = None
    root_partition: Optional[str] = None
    home_partition: Optional[str] = None
    microcode: Optional[str] = None
    timezone: Optional[str] = None

    def summary(self) -> list[tuple[str, str]]:
        if self.separate_home:
            layout = f"Separate root and home (root size: {self.root_size_gib}GB)"
        else:
            layout = "Single root partition (no separate /home)"
        network = " ".join(self.network.packages) or "(manual setup)"
        dotfiles = f"Yes (Repo: {self.dotfiles_repo})" if self.dotfiles_repo else "No"
        return [
            ("Disk", self.disk or ""),
            ("Wipe Method", "Secure Full Wipe (slow)" if self.secure_wipe else "Quick Partition Table Zap"),
            ("Partitioning", layout),
            ("Keymap", self.keymap),
            ("Locale", self.locale),
            ("Username", self.username or "(root only)"),
            ("Network", network),
            ("Hostname", self.hostname),
            ("Kernel", self.kernel.package),
            ("Editor", self.editor.package),
            ("Dotfiles", dotfiles),
            ("GRUB Theme", f"{self.grub_theme.directory} ({self.grub_theme.gfxmode})"),
        ]


@dataclass
class DiskMap:
    disk: str
    efi: str
    root: str
    home: Optional[str] = None


@dataclass
class Context:
    """State threaded through every pipeline stage."""

    config: InstallConfig
    flags: Flags

    @property
    def mnt(self) -> str:
        return self.flags.mnt

    @property
    def dry_run(self) -> bool:
        return self.flags.dry_run
