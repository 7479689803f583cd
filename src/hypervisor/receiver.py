"""
Libvirt Hotplug Receiver - Plugs VFIO device groups into libvirt domains.

Each member of the device's IOMMU group becomes one ``<hostdev>`` element.
Members are attached in order; if one fails, the members already
attached are detached again so the group is never left half-plugged.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from common.exceptions import HotplugError
from pci_passthrough.api import Device
from pci_passthrough.bdf import DEFAULT_PCI_DOMAIN, split_bdf
from pci_passthrough.config import DeviceType, VFIODev

from .connection import LibvirtConnection, libvirt
from .templates.loader import TemplateLoader, get_template_loader

logger = logging.getLogger(__name__)

HOSTDEV_TEMPLATE = "hostdev.xml.j2"

# libvirt only accepts user aliases of the form ua-[A-Za-z0-9_-]+
_ALIAS_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")


class LibvirtHotplugReceiver:
    """
    Hotplug receiver backed by a libvirt domain.

    Args:
        connection: Libvirt connection
        domain_name: Name of the target domain
        live: Also affect the running domain when it is active
        managed: Let libvirt rebind devices itself (off when the caller
            uses bind_device_to_vfio/bind_device_to_host)
        loader: Template loader (default: global loader)
    """

    def __init__(
        self,
        connection: LibvirtConnection,
        domain_name: str,
        live: bool = True,
        managed: bool = False,
        loader: Optional[TemplateLoader] = None,
    ):
        self._connection = connection
        self.domain_name = domain_name
        self.live = live
        self.managed = managed
        self._loader = loader or get_template_loader()

    @staticmethod
    def hostdev_alias(vfio_dev: VFIODev) -> str:
        """
        User alias for one group member, e.g. ``ua-vfio-03-10-2``.

        Built from the member's BDF, which is unique on the host, rather
        than from its truncated member ID.
        """
        return "ua-vfio-" + _ALIAS_UNSAFE.sub("-", vfio_dev.bdf)

    def hostdev_xml(self, vfio_dev: VFIODev) -> str:
        """Render the <hostdev> element for one group member."""
        bus, slot, function = split_bdf(vfio_dev.bdf)
        xml = self._loader.render(
            HOSTDEV_TEMPLATE,
            domain=DEFAULT_PCI_DOMAIN,
            bus=bus,
            slot=slot,
            function=function,
            alias=self.hostdev_alias(vfio_dev),
            managed=self.managed,
        )
        if xml is None:
            raise HotplugError(vfio_dev.id, "render", f"template {HOSTDEV_TEMPLATE} not found")
        return xml

    def _flags(self, domain) -> int:
        flags = libvirt.VIR_DOMAIN_AFFECT_CONFIG
        if self.live and domain.isActive():
            flags |= libvirt.VIR_DOMAIN_AFFECT_LIVE
        return flags

    def _members(self, device: Device, device_type: DeviceType, operation: str) -> List[VFIODev]:
        if device_type != DeviceType.VFIO:
            raise HotplugError(
                device.device_id(), operation,
                f"unsupported device type: {device_type.value}",
            )
        return device.get_device_info()

    def hotplug_add_device(self, device: Device, device_type: DeviceType) -> None:
        """
        Attach every member of a VFIO device group to the domain.

        Raises:
            HotplugError: If any member cannot be attached
        """
        members = self._members(device, device_type, "add")
        domain = self._connection.lookup_domain(self.domain_name)
        flags = self._flags(domain)

        attached: List[str] = []
        for member in members:
            xml = self.hostdev_xml(member)
            try:
                domain.attachDeviceFlags(xml, flags)
            except libvirt.libvirtError as e:
                logger.error(f"Failed to attach {member.bdf} to {self.domain_name}: {e}")
                self._rollback(domain, attached, flags)
                raise HotplugError(device.device_id(), "add", str(e), cause=e) from e
            attached.append(xml)
            logger.info(f"Attached {member.bdf} to {self.domain_name}")

    def hotplug_remove_device(self, device: Device, device_type: DeviceType) -> None:
        """
        Detach every member of a VFIO device group from the domain.

        Every member is tried even if an earlier one fails, and a member
        the domain no longer has counts as detached, so a failed removal
        can simply be retried.

        Raises:
            HotplugError: If any member could not be detached
        """
        members = self._members(device, device_type, "remove")
        domain = self._connection.lookup_domain(self.domain_name)
        flags = self._flags(domain)

        failed: List[str] = []
        last_error = None
        for member in members:
            try:
                domain.detachDeviceFlags(self.hostdev_xml(member), flags)
            except libvirt.libvirtError as e:
                if self._is_device_missing(e):
                    logger.info(f"{member.bdf} already detached from {self.domain_name}")
                    continue
                logger.error(f"Failed to detach {member.bdf} from {self.domain_name}: {e}")
                failed.append(member.bdf)
                last_error = e
                continue
            logger.info(f"Detached {member.bdf} from {self.domain_name}")

        if failed:
            raise HotplugError(
                device.device_id(), "remove",
                f"could not detach {', '.join(failed)}: {last_error}",
                cause=last_error,
            )

    @staticmethod
    def _is_device_missing(error) -> bool:
        return error.get_error_code() == libvirt.VIR_ERR_DEVICE_MISSING

    def _rollback(self, domain, attached: List[str], flags: int) -> None:
        for xml in reversed(attached):
            try:
                domain.detachDeviceFlags(xml, flags)
            except libvirt.libvirtError as e:
                logger.warning(f"Rollback detach failed: {e}")
