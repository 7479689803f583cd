"""
Tests for the libvirt hotplug receiver and template loading.
"""

import re
from unittest.mock import MagicMock, patch

import pytest

from common.exceptions import HotplugError
from pci_passthrough.config import DeviceInfo, DeviceType, VFIODev
from pci_passthrough.vfio import VFIODevice


@pytest.fixture
def receiver_cls(fake_libvirt):
    """LibvirtHotplugReceiver with the libvirt module replaced."""
    with patch("hypervisor.receiver.libvirt", fake_libvirt):
        from hypervisor.receiver import LibvirtHotplugReceiver
        yield LibvirtHotplugReceiver


def _device_with_members(members):
    device = MagicMock()
    device.device_id.return_value = "nic0"
    device.get_device_info.return_value = members
    return device


MEMBERS = [
    VFIODev(id="vfio-nic00", bdf="03:10.0"),
    VFIODev(id="vfio-nic01", bdf="03:10.2"),
]


class TestTemplates:
    """Tests for the hostdev template."""

    def test_hostdev_xml(self, receiver_cls, mock_connection):
        receiver = receiver_cls(mock_connection, "guest1")

        xml = receiver.hostdev_xml(MEMBERS[1])

        assert "type='pci'" in xml
        assert "managed='no'" in xml
        assert "bus='0x03'" in xml
        assert "slot='0x10'" in xml
        assert "function='0x2'" in xml
        assert "domain='0x0000'" in xml
        assert "<alias name='ua-vfio-03-10-2'/>" in xml

    def test_aliases_unique_for_long_device_id(self, receiver_cls, mock_connection,
                                               mock_domain, iommu_root):
        """Test members keep distinct, legal aliases when member IDs truncate."""
        info = DeviceInfo(id="a" * 27, host_path="/dev/vfio/12")
        device = VFIODevice(info, iommu_root=iommu_root)

        device.attach(receiver_cls(mock_connection, "guest1"))

        members = device.get_device_info()
        assert members[0].id == members[1].id

        aliases = [
            re.search(r"<alias name='([^']*)'/>", call.args[0]).group(1)
            for call in mock_domain.attachDeviceFlags.call_args_list
        ]
        assert len(set(aliases)) == 2
        for alias in aliases:
            assert re.fullmatch(r"ua-[A-Za-z0-9_-]+", alias)

    def test_managed_hostdev(self, receiver_cls, mock_connection):
        receiver = receiver_cls(mock_connection, "guest1", managed=True)
        assert "managed='yes'" in receiver.hostdev_xml(MEMBERS[0])

    def test_loader_lists_shipped_template(self):
        from hypervisor.templates.loader import TemplateLoader

        assert "hostdev.xml.j2" in TemplateLoader().list_templates()

    def test_missing_template_returns_none(self):
        from hypervisor.templates.loader import TemplateLoader

        assert TemplateLoader().render("nope.xml.j2") is None


class TestHotplugAdd:
    """Tests for hotplug_add_device."""

    def test_attaches_every_member_live(self, receiver_cls, mock_connection, mock_domain):
        """Test one attachDeviceFlags per member with live+config flags."""
        receiver = receiver_cls(mock_connection, "guest1")

        receiver.hotplug_add_device(_device_with_members(MEMBERS), DeviceType.VFIO)

        mock_connection.lookup_domain.assert_called_once_with("guest1")
        assert mock_domain.attachDeviceFlags.call_count == 2
        xml, flags = mock_domain.attachDeviceFlags.call_args_list[0].args
        assert "bus='0x03'" in xml
        assert flags == 3

    def test_inactive_domain_config_only(self, receiver_cls, mock_connection, mock_domain):
        mock_domain.isActive.return_value = False
        receiver = receiver_cls(mock_connection, "guest1")

        receiver.hotplug_add_device(_device_with_members(MEMBERS[:1]), DeviceType.VFIO)

        assert mock_domain.attachDeviceFlags.call_args.args[1] == 2

    def test_failure_rolls_back(self, receiver_cls, mock_connection, mock_domain, fake_libvirt):
        """Test members already attached are detached when a later one fails."""
        mock_domain.attachDeviceFlags.side_effect = [None, fake_libvirt.libvirtError("busy")]
        receiver = receiver_cls(mock_connection, "guest1")

        with pytest.raises(HotplugError) as exc_info:
            receiver.hotplug_add_device(_device_with_members(MEMBERS), DeviceType.VFIO)

        assert exc_info.value.details["operation"] == "add"
        assert mock_domain.detachDeviceFlags.call_count == 1
        rolled_back = mock_domain.detachDeviceFlags.call_args.args[0]
        assert "function='0x0'" in rolled_back

    def test_rejects_other_device_types(self, receiver_cls, mock_connection):
        receiver = receiver_cls(mock_connection, "guest1")

        with pytest.raises(HotplugError):
            receiver.hotplug_add_device(_device_with_members([]), DeviceType.GENERIC)

    def test_with_vfio_device(self, receiver_cls, mock_connection, mock_domain, iommu_root):
        """Test the receiver reads the group a VFIODevice built during attach."""
        info = DeviceInfo(id="nic0", host_path="/dev/vfio/12")
        device = VFIODevice(info, iommu_root=iommu_root)

        device.attach(receiver_cls(mock_connection, "guest1"))

        assert device.is_attached() is True
        assert mock_domain.attachDeviceFlags.call_count == 2


class TestHotplugRemove:
    """Tests for hotplug_remove_device."""

    def test_detaches_every_member(self, receiver_cls, mock_connection, mock_domain):
        receiver = receiver_cls(mock_connection, "guest1")

        receiver.hotplug_remove_device(_device_with_members(MEMBERS), DeviceType.VFIO)

        assert mock_domain.detachDeviceFlags.call_count == 2

    def test_failure_raises(self, receiver_cls, mock_connection, mock_domain, fake_libvirt):
        mock_domain.detachDeviceFlags.side_effect = fake_libvirt.libvirtError("gone")
        receiver = receiver_cls(mock_connection, "guest1")

        with pytest.raises(HotplugError) as exc_info:
            receiver.hotplug_remove_device(_device_with_members(MEMBERS), DeviceType.VFIO)

        assert exc_info.value.details["operation"] == "remove"

    def test_failure_still_tries_every_member(self, receiver_cls, mock_connection,
                                              mock_domain, fake_libvirt):
        mock_domain.detachDeviceFlags.side_effect = [fake_libvirt.libvirtError("busy"), None]
        receiver = receiver_cls(mock_connection, "guest1")

        with pytest.raises(HotplugError) as exc_info:
            receiver.hotplug_remove_device(_device_with_members(MEMBERS), DeviceType.VFIO)

        assert mock_domain.detachDeviceFlags.call_count == 2
        assert "03:10.0" in exc_info.value.details["reason"]

    def test_retry_after_partial_remove(self, receiver_cls, mock_connection,
                                        mock_domain, fake_libvirt, iommu_root):
        """Test a group can be detached again after one member failed."""
        plugged = set()
        fail_once = {"03:10.2"}

        def attach(xml, flags):
            plugged.add(re.search(r"function='0x(\d)'", xml).group(1))

        def detach(xml, flags):
            function = re.search(r"function='0x(\d)'", xml).group(1)
            bdf = "03:10." + function
            if bdf in fail_once:
                fail_once.discard(bdf)
                raise fake_libvirt.libvirtError("device busy")
            if function not in plugged:
                raise fake_libvirt.libvirtError(
                    "device not found", code=fake_libvirt.VIR_ERR_DEVICE_MISSING
                )
            plugged.discard(function)

        mock_domain.attachDeviceFlags.side_effect = attach
        mock_domain.detachDeviceFlags.side_effect = detach
        receiver = receiver_cls(mock_connection, "guest1")
        device = VFIODevice(DeviceInfo(id="nic0", host_path="/dev/vfio/12"), iommu_root=iommu_root)
        device.attach(receiver)

        with pytest.raises(HotplugError):
            device.detach(receiver)
        assert device.is_attached() is True
        assert plugged == {"2"}

        device.detach(receiver)

        assert device.is_attached() is False
        assert plugged == set()

    def test_other_errors_are_not_treated_as_missing(self, receiver_cls, mock_connection,
                                                     mock_domain, fake_libvirt):
        mock_domain.detachDeviceFlags.side_effect = fake_libvirt.libvirtError("denied", code=38)
        receiver = receiver_cls(mock_connection, "guest1")

        with pytest.raises(HotplugError):
            receiver.hotplug_remove_device(_device_with_members(MEMBERS[:1]), DeviceType.VFIO)


class TestLibvirtConnection:
    """Tests for LibvirtConnection with libvirt mocked."""

    def test_lookup_connects_lazily(self, fake_libvirt):
        conn = MagicMock()
        conn.isAlive.return_value = 1
        fake_libvirt.open = MagicMock(return_value=conn)

        with patch("hypervisor.connection.libvirt", fake_libvirt), \
                patch("hypervisor.connection.LIBVIRT_AVAILABLE", True):
            from hypervisor.connection import LibvirtConnection

            connection = LibvirtConnection("qemu:///system")
            connection.lookup_domain("guest1")

        fake_libvirt.open.assert_called_once_with("qemu:///system")
        conn.lookupByName.assert_called_once_with("guest1")

    def test_open_failure(self, fake_libvirt):
        from common.exceptions import LibvirtConnectionError

        fake_libvirt.open = MagicMock(side_effect=fake_libvirt.libvirtError("denied"))

        with patch("hypervisor.connection.libvirt", fake_libvirt), \
                patch("hypervisor.connection.LIBVIRT_AVAILABLE", True):
            from hypervisor.connection import LibvirtConnection

            with pytest.raises(LibvirtConnectionError):
                LibvirtConnection().connect()

    def test_unknown_domain(self, fake_libvirt):
        from common.exceptions import DomainNotFoundError

        conn = MagicMock()
        conn.isAlive.return_value = 1
        conn.lookupByName.side_effect = fake_libvirt.libvirtError("no domain")
        fake_libvirt.open = MagicMock(return_value=conn)

        with patch("hypervisor.connection.libvirt", fake_libvirt), \
                patch("hypervisor.connection.LIBVIRT_AVAILABLE", True):
            from hypervisor.connection import LibvirtConnection

            with pytest.raises(DomainNotFoundError):
                LibvirtConnection().lookup_domain("missing")

    def test_missing_binding_raises_connection_error(self):
        from common.exceptions import LibvirtConnectionError

        with patch("hypervisor.connection.LIBVIRT_AVAILABLE", False):
            from hypervisor.connection import LibvirtConnection

            with pytest.raises(LibvirtConnectionError, match="libvirt-python"):
                LibvirtConnection("qemu:///system")
