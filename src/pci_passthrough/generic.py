"""
Generic Device - A device the hypervisor needs no hotplug call for.
"""

from __future__ import annotations

import logging
from typing import Optional

from .api import DeviceReceiver
from .config import DeviceInfo, DeviceType

logger = logging.getLogger(__name__)


class GenericDevice:
    """Device whose attach state is tracked without involving the receiver."""

    def __init__(self, device_info: DeviceInfo):
        self.id = device_info.id
        self.device_info = device_info

    def __repr__(self) -> str:
        return f"GenericDevice(id={self.id!r}, attached={self.is_attached()})"

    def attach(self, receiver: DeviceReceiver) -> None:
        if self.device_info.hotplugged:
            return
        logger.debug(f"Generic device {self.id} attached")
        self.device_info.hotplugged = True

    def detach(self, receiver: DeviceReceiver) -> None:
        if not self.device_info.hotplugged:
            return
        logger.debug(f"Generic device {self.id} detached")
        self.device_info.hotplugged = False

    def is_attached(self) -> bool:
        return self.device_info.hotplugged

    def device_type(self) -> DeviceType:
        return DeviceType.GENERIC

    def device_id(self) -> str:
        return self.id

    def get_device_info(self) -> Optional[object]:
        return None
