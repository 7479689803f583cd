"""
Device Configuration - Dataclasses describing host devices and VFIO members.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

# Root of the kernel's IOMMU group tree
SYS_IOMMU_PATH = Path("/sys/kernel/iommu_groups")

# Longest identifier a generated VFIO member ID may have
MAX_DEV_ID_SIZE = 31


class DeviceType(Enum):
    """Kinds of devices that can be handed to a hotplug receiver."""
    VFIO = "vfio"
    GENERIC = "generic"


@dataclass
class DeviceInfo:
    """
    Host-supplied description of a device.

    Owned by the caller and shared with the device entity, which reads
    and writes ``hotplugged``.
    """
    id: str
    host_path: str
    hotplugged: bool = False
    dev_type: DeviceType = DeviceType.VFIO
    container_path: Optional[str] = None
    driver_options: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "host_path": self.host_path,
            "hotplugged": self.hotplugged,
            "dev_type": self.dev_type.value,
            "container_path": self.container_path,
            "driver_options": dict(self.driver_options),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DeviceInfo":
        """Create DeviceInfo from dictionary."""
        return cls(
            id=data["id"],
            host_path=data["host_path"],
            hotplugged=bool(data.get("hotplugged", False)),
            dev_type=DeviceType(data.get("dev_type", DeviceType.VFIO.value)),
            container_path=data.get("container_path"),
            driver_options=dict(data.get("driver_options") or {}),
        )


@dataclass(frozen=True)
class VFIODev:
    """A member device of an IOMMU group."""
    id: str     # e.g., "vfio-gpu00"
    bdf: str    # e.g., "01:00.0"


def make_name_id(named_type: str, base: str, max_len: int) -> str:
    """
    Build a ``<type>-<base>`` identifier truncated to ``max_len`` characters.

    Args:
        named_type: Prefix naming the kind of object (e.g., "vfio")
        base: Unique part of the name
        max_len: Maximum length of the result

    Returns:
        Identifier string.
    """
    name_id = f"{named_type}-{base}"
    if len(name_id) > max_len:
        name_id = name_id[:max_len]
    return name_id
