"""
Device interfaces shared by every passthrough device kind.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .config import DeviceType


@runtime_checkable
class DeviceReceiver(Protocol):
    """Something that can hotplug devices into a running VM (a hypervisor)."""

    def hotplug_add_device(self, device: "Device", device_type: DeviceType) -> None:
        ...

    def hotplug_remove_device(self, device: "Device", device_type: DeviceType) -> None:
        ...


@runtime_checkable
class Device(Protocol):
    """Capabilities common to all device kinds."""

    def attach(self, receiver: DeviceReceiver) -> None:
        ...

    def detach(self, receiver: DeviceReceiver) -> None:
        ...

    def is_attached(self) -> bool:
        ...

    def device_type(self) -> DeviceType:
        ...

    def device_id(self) -> str:
        ...

    def get_device_info(self) -> Any:
        ...
