"""
VFIO Device - An IOMMU group handed to a VM as one hotplug unit.

Attach always re-enumerates the whole group and hotplugs it in a single
receiver call; Detach removes the whole unit. The shared
``DeviceInfo.hotplugged`` flag is the only attach state.

Not thread-safe: callers must not run attach/detach on the same device
concurrently (see DeviceManager).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

from .api import DeviceReceiver
from .config import DeviceInfo, DeviceType, VFIODev
from .iommu import DirLister, enumerate_group

module_logger = logging.getLogger(__name__)


class VFIODevice:
    """
    A VFIO device meant to be passed to the hypervisor for use by a VM.

    Attributes:
        id: Device identifier (copied from DeviceInfo)
        device_info: Caller-owned DeviceInfo, shared with this entity
    """

    def __init__(
        self,
        device_info: DeviceInfo,
        iommu_root: Union[str, Path, None] = None,
        list_dir: Optional[DirLister] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize VFIODevice.

        Args:
            device_info: Host metadata; host_path names the IOMMU group
            iommu_root: Root of the IOMMU group tree (default: sysfs)
            list_dir: Directory lister used to enumerate the group
            logger: Logger for this device (default: module logger)
        """
        self.id = device_info.id
        self.device_info = device_info
        self._iommu_root = iommu_root
        self._list_dir = list_dir
        self._logger = logger or module_logger
        self._vfio_devs: List[VFIODev] = []

    def __repr__(self) -> str:
        return (
            f"VFIODevice(id={self.id!r}, host_path={self.device_info.host_path!r}, "
            f"attached={self.is_attached()})"
        )

    def _log_fields(self) -> dict:
        return {
            "device-id": self.id,
            "device-group": self.device_info.host_path,
            "device-type": "vfio-passthrough",
        }

    def attach(self, receiver: DeviceReceiver) -> None:
        """
        Enumerate the IOMMU group and hotplug it into ``receiver``.

        No-op when the device is already hotplugged. On any failure the
        member list is cleared and the device stays detached.

        Raises:
            IOMMUGroupError: If the group directory cannot be listed
            BDFParseError: If a group member is not a PCI address
            Exception: Whatever the receiver raises
        """
        if self.device_info.hotplugged:
            return

        try:
            self._vfio_devs = enumerate_group(
                self.device_info.id,
                self.device_info.host_path,
                self._iommu_root,
                self._list_dir,
            )
            # hotplugging a VFIO device is hotplugging its whole IOMMU group
            receiver.hotplug_add_device(self, DeviceType.VFIO)
        except Exception as e:
            self._vfio_devs = []
            self._logger.error(
                f"Failed to add device: {e}",
                extra={"extra_data": self._log_fields()},
            )
            raise

        self._logger.info(
            "Device group attached",
            extra={"extra_data": {**self._log_fields(), "members": len(self._vfio_devs)}},
        )
        self.device_info.hotplugged = True

    def detach(self, receiver: DeviceReceiver) -> None:
        """
        Hot-unplug the IOMMU group from ``receiver``.

        No-op when the device is not hotplugged.

        Raises:
            Exception: Whatever the receiver raises; the device stays attached
        """
        if not self.device_info.hotplugged:
            return

        try:
            receiver.hotplug_remove_device(self, DeviceType.VFIO)
        except Exception as e:
            self._logger.error(
                f"Failed to remove device: {e}",
                extra={"extra_data": self._log_fields()},
            )
            raise

        self._logger.info(
            "Device group detached",
            extra={"extra_data": self._log_fields()},
        )
        self.device_info.hotplugged = False

    def is_attached(self) -> bool:
        """Check if the device is attached."""
        return self.device_info.hotplugged

    def device_type(self) -> DeviceType:
        return DeviceType.VFIO

    def device_id(self) -> str:
        return self.id

    def get_device_info(self) -> List[VFIODev]:
        """Get the IOMMU group members built by the last attach."""
        return list(self._vfio_devs)
