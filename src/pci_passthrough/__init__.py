"""vfio-passthrough device module.

This module provides:
- VFIO device entities that hotplug whole IOMMU groups
- Driver rebinding between host drivers and vfio-pci
- IOMMU group enumeration and BDF parsing
"""

from .api import Device, DeviceReceiver
from .bdf import parse_bdf, split_bdf, full_address
from .config import DeviceInfo, DeviceType, VFIODev, make_name_id
from .generic import GenericDevice
from .iommu import enumerate_group
from .manager import DeviceManager
from .rebind import bind_device_to_host, bind_device_to_vfio
from .vfio import VFIODevice

__all__ = [
    # Interfaces
    "Device",
    "DeviceReceiver",
    # Devices
    "VFIODevice",
    "GenericDevice",
    "DeviceManager",
    # Config
    "DeviceInfo",
    "DeviceType",
    "VFIODev",
    "make_name_id",
    # Sysfs
    "parse_bdf",
    "split_bdf",
    "full_address",
    "enumerate_group",
    "bind_device_to_vfio",
    "bind_device_to_host",
]

__version__ = "0.1.0"
