from archplus import devices

LSBLK = """/dev/sda      476.9G Samsung SSD 860
/dev/mmcblk0boot0 4M
/dev/loop0    795.1M
/dev/nvme0n1  931.5G WD_BLACK SN850X
/dev/mmcblk0rpmb 4M

"""


def test_partition_path_separator():
    assert devices.partition_path("/dev/sda", 1) == "/dev/sda1"
    assert devices.partition_path("/dev/nvme0n1", 2) == "/dev/nvme0n1p2"
    assert devices.partition_path("/dev/mmcblk0", 3) == "/dev/mmcblk0p3"


def test_list_disks_skips_pseudo_devices(fake_run):
    fake_run.on("lsblk -dpno NAME,SIZE,MODEL", out=LSBLK)
    disks = devices.list_disks()
    assert [devices.disk_name(line) for line in disks] == ["/dev/sda", "/dev/nvme0n1"]


def test_disk_size_gib(fake_run):
    fake_run.on("SIZE /dev/sda", out=f"{64 * 1024 ** 3 + 5}\n")
    assert devices.disk_size_gib("/dev/sda") == 64


def test_parent_disk_and_partnum(fake_run):
    fake_run.on("PKNAME /dev/nvme0n1p2", out="nvme0n1\n").on("PARTNUM /dev/nvme0n1p1", out=" 1\n")
    assert devices.parent_disk("/dev/nvme0n1p2") == "/dev/nvme0n1"
    assert devices.partition_number("/dev/nvme0n1p1") == "1"
    assert devices.parent_disk("/dev/sdz9") == ""


def test_detect_microcode(tmp_path):
    cpuinfo = tmp_path / "cpuinfo"
    cpuinfo.write_text("processor\t: 0\nvendor_id\t: GenuineIntel\n", encoding="utf-8")
    assert devices.detect_microcode(str(cpuinfo)) == ("intel-ucode", True)
    cpuinfo.write_text("vendor_id\t: AuthenticAMD\n", encoding="utf-8")
    assert devices.detect_microcode(str(cpuinfo)) == ("amd-ucode", True)
    cpuinfo.write_text("vendor_id\t: HygonGenuine\n", encoding="utf-8")
    assert devices.detect_microcode(str(cpuinfo)) == ("amd-ucode", False)
    assert devices.detect_microcode(str(tmp_path / "missing")) == ("amd-ucode", False)


def test_list_locales(tmp_path):
    locale_gen = tmp_path / "locale.gen"
    locale_gen.write_text(
        "# Configuration file for locale-gen\n#en_DK.UTF-8 UTF-8\n#da_DK ISO-8859-1\nen_US.UTF-8 UTF-8\n",
        encoding="utf-8",
    )
    assert devices.list_locales(str(locale_gen)) == ["en_DK.UTF-8", "en_US.UTF-8"]
    assert devices.list_locales(str(tmp_path / "missing")) == []


def test_virtual_machine_probe(fake_run):
    assert devices.is_virtual_machine()
    fake_run.on("systemd-detect-virt", rc=1)
    assert not devices.is_virtual_machine()
