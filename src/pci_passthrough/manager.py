"""
Device Manager - Owns device entities and serializes operations per device.

Device entities carry no locks of their own; the manager holds one lock
per device identifier so attach/detach of the same device never overlap,
while different devices proceed independently.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional, Union

from common.exceptions import DeviceBusyError, DeviceNotFoundError, DuplicateDeviceError

from .api import Device, DeviceReceiver
from .config import DeviceInfo, DeviceType
from .generic import GenericDevice
from .vfio import VFIODevice

module_logger = logging.getLogger(__name__)


class DeviceManager:
    """
    Creates devices from DeviceInfo and drives their attach/detach.

    Example:
        manager = DeviceManager(receiver)
        manager.new_device(DeviceInfo(id="vf0", host_path="/dev/vfio/12"))
        manager.attach_device("vf0")
    """

    def __init__(
        self,
        receiver: DeviceReceiver,
        iommu_root: Union[str, Path, None] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._receiver = receiver
        self._iommu_root = iommu_root
        self._logger = logger or module_logger
        self._devices: Dict[str, Device] = {}
        self._device_locks: Dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def new_device(self, device_info: DeviceInfo) -> Device:
        """
        Create and register a device for ``device_info``.

        Raises:
            DuplicateDeviceError: If the identifier is already registered
        """
        if device_info.dev_type == DeviceType.VFIO:
            device: Device = VFIODevice(
                device_info, iommu_root=self._iommu_root, logger=self._logger
            )
        else:
            device = GenericDevice(device_info)

        with self._lock:
            if device_info.id in self._devices:
                raise DuplicateDeviceError(device_info.id)
            self._devices[device_info.id] = device
            self._device_locks[device_info.id] = threading.Lock()

        self._logger.debug(f"Registered {device_info.dev_type.value} device {device_info.id}")
        return device

    def get_device(self, device_id: str) -> Device:
        """
        Raises:
            DeviceNotFoundError: If no such device is registered
        """
        with self._lock:
            device = self._devices.get(device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)
        return device

    def list_devices(self) -> List[Device]:
        with self._lock:
            return list(self._devices.values())

    @contextmanager
    def _exclusive(self, device_id: str, blocking: bool):
        with self._lock:
            lock = self._device_locks.get(device_id)
        if lock is None:
            raise DeviceNotFoundError(device_id)

        if not lock.acquire(blocking=blocking):
            raise DeviceBusyError(device_id, "another operation is in progress")
        try:
            with self._lock:
                # The id may have been removed, or re-registered with a new lock, while we waited
                current = self._device_locks.get(device_id)
                device = self._devices.get(device_id)
            if current is not lock or device is None:
                raise DeviceNotFoundError(device_id)
            yield device
        finally:
            lock.release()

    def attach_device(self, device_id: str, blocking: bool = True) -> Device:
        """
        Attach a registered device to the receiver.

        Args:
            device_id: Device identifier
            blocking: Wait for a concurrent operation on the same device
                instead of raising DeviceBusyError

        Returns:
            The attached device.
        """
        with self._exclusive(device_id, blocking) as device:
            device.attach(self._receiver)
            return device

    def detach_device(self, device_id: str, blocking: bool = True) -> Device:
        """Detach a registered device from the receiver."""
        with self._exclusive(device_id, blocking) as device:
            device.detach(self._receiver)
            return device

    def remove_device(self, device_id: str) -> None:
        """
        Forget a device.

        Raises:
            DeviceBusyError: If the device is attached or in use
            DeviceNotFoundError: If no such device is registered
        """
        with self._exclusive(device_id, blocking=False) as device:
            if device.is_attached():
                raise DeviceBusyError(device_id, "device is still attached")
            with self._lock:
                del self._devices[device_id]
                del self._device_locks[device_id]

        self._logger.debug(f"Removed device {device_id}")
