"""ArchLinuxPlus installer: encrypted Btrfs Arch Linux with Secure Boot GRUB."""

__version__ = "1.0.0"
