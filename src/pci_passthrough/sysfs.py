"""
Sysfs control files used to move PCI devices between drivers.
"""

from __future__ import annotations

import logging
import os
from typing import Callable, Union

from common.exceptions import SysfsWriteError

logger = logging.getLogger(__name__)

VFIO_DRIVER = "vfio-pci"

# bind/unbind paths to aid in SR-IOV VF bring-up/restore
PCI_DRIVER_UNBIND_PATH = "/sys/bus/pci/devices/{bdf}/driver/unbind"
PCI_DRIVER_BIND_PATH = "/sys/bus/pci/drivers/{driver}/bind"
VFIO_NEW_ID_PATH = "/sys/bus/pci/drivers/vfio-pci/new_id"
VFIO_REMOVE_ID_PATH = "/sys/bus/pci/drivers/vfio-pci/remove_id"

# Signature of the write primitive: (path, payload) -> None, raising on failure
SysfsWriter = Callable[[str, bytes], None]


def unbind_path(bdf: str) -> str:
    """Unbind control file of whatever driver currently owns ``bdf``."""
    return PCI_DRIVER_UNBIND_PATH.format(bdf=bdf)


def bind_path(driver: str) -> str:
    """Bind control file of the named driver."""
    return PCI_DRIVER_BIND_PATH.format(driver=driver)


def write_to_file(path: str, data: Union[bytes, str]) -> None:
    """
    Write ``data`` to an existing file with a single write call.

    The file is opened write-only and never created, so a missing sysfs
    attribute is reported instead of silently becoming a regular file.

    Args:
        path: File to write (typically a sysfs control file)
        data: Payload

    Raises:
        SysfsWriteError: If the file cannot be opened or written
    """
    if isinstance(data, str):
        data = data.encode()

    try:
        fd = os.open(path, os.O_WRONLY)
        try:
            os.write(fd, data)
        finally:
            os.close(fd)
    except OSError as e:
        raise SysfsWriteError(path, data.decode(errors="replace"), cause=e) from e

    logger.debug(f"Wrote {len(data)} bytes to {path}")
