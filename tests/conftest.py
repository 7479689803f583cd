"""
Pytest configuration and shared fixtures for vfio-passthrough tests.

Provides fakes for sysfs, the IOMMU group tree and hotplug receivers.
"""

import os
import pytest
from unittest.mock import MagicMock
from pathlib import Path
from types import SimpleNamespace
from typing import List, Tuple
import sys

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


# ============ Sysfs Fixtures ============

class RecordingWriter:
    """Sysfs write primitive that records writes and fails on request."""

    def __init__(self):
        self.writes: List[Tuple[str, bytes]] = []
        self.fail_paths = set()

    def __call__(self, path: str, data: bytes) -> None:
        from common.exceptions import SysfsWriteError

        self.writes.append((path, data))
        if path in self.fail_paths:
            raise SysfsWriteError(path, data.decode(), cause=OSError(16, "Device or resource busy"))

    @property
    def paths(self) -> List[str]:
        return [path for path, _ in self.writes]


@pytest.fixture
def recording_writer() -> RecordingWriter:
    """Provide a sysfs writer that records every write."""
    return RecordingWriter()


@pytest.fixture
def iommu_root(tmp_path: Path) -> Path:
    """Mock IOMMU group tree with a two-function group 12 and an empty group 7."""
    root = tmp_path / "iommu_groups"

    devices = root / "12" / "devices"
    devices.mkdir(parents=True)
    (devices / "0000:03:10.2").touch()
    (devices / "0000:03:10.0").touch()

    (root / "7" / "devices").mkdir(parents=True)

    return root


# ============ Receiver Fixtures ============

class RecordingReceiver:
    """Hotplug receiver that records calls and fails on request."""

    def __init__(self):
        self.added = []
        self.removed = []
        self.seen_members = []
        self.fail_add = False
        self.fail_remove = False

    def hotplug_add_device(self, device, device_type):
        self.added.append((device, device_type))
        self.seen_members.append(device.get_device_info())
        if self.fail_add:
            raise RuntimeError("hypervisor refused device")

    def hotplug_remove_device(self, device, device_type):
        self.removed.append((device, device_type))
        if self.fail_remove:
            raise RuntimeError("hypervisor refused removal")


@pytest.fixture
def receiver() -> RecordingReceiver:
    """Provide a recording hotplug receiver."""
    return RecordingReceiver()


@pytest.fixture
def device_info():
    """Provide a DeviceInfo naming IOMMU group 12."""
    from pci_passthrough.config import DeviceInfo

    return DeviceInfo(id="nic0", host_path="/dev/vfio/12")


# ============ Libvirt Fixtures ============

class FakeLibvirtError(Exception):
    """Stand-in for libvirt.libvirtError."""

    def __init__(self, msg, code=1):
        super().__init__(msg)
        self.code = code

    def get_error_code(self):
        return self.code


@pytest.fixture
def fake_libvirt():
    """Namespace with the libvirt names the receiver uses."""
    return SimpleNamespace(
        libvirtError=FakeLibvirtError,
        VIR_DOMAIN_AFFECT_LIVE=1,
        VIR_DOMAIN_AFFECT_CONFIG=2,
        VIR_ERR_DEVICE_MISSING=99,
    )


@pytest.fixture
def mock_domain():
    """Mock libvirt domain."""
    domain = MagicMock()
    domain.name.return_value = "guest1"
    domain.isActive.return_value = True
    return domain


@pytest.fixture
def mock_connection(mock_domain):
    """Mock LibvirtConnection returning mock_domain."""
    connection = MagicMock()
    connection.lookup_domain.return_value = mock_domain
    return connection


# ============ Marker Configuration ============

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "requires_root: marks tests that need root privileges"
    )
    config.addinivalue_line(
        "markers", "requires_libvirt: marks tests that need libvirt running"
    )
    config.addinivalue_line(
        "markers", "unit: fast unit tests with no external deps"
    )


def pytest_collection_modifyitems(config, items):
    """Skip tests based on environment."""
    skip_root = pytest.mark.skip(reason="Requires root privileges")
    skip_libvirt = pytest.mark.skip(reason="Requires libvirt daemon")

    for item in items:
        if "requires_root" in item.keywords:
            try:
                if os.getuid() != 0:
                    item.add_marker(skip_root)
            except AttributeError:
                item.add_marker(skip_root)

        if "requires_libvirt" in item.keywords:
            try:
                import libvirt
                conn = libvirt.open("qemu:///system")
                if conn:
                    conn.close()
            except Exception:
                item.add_marker(skip_libvirt)
