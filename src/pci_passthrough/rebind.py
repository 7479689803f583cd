"""
Driver Rebind - Moves a PCI device between its host driver and vfio-pci.

This module provides the two sysfs write sequences used to:
- Hand a device (typically an SR-IOV VF) to vfio-pci before passthrough
- Return it to its host driver after the VM releases it

Each write is attempted once. Callers must serialize rebinds of the
same BDF; the driver binding namespace is global kernel state.
"""

from __future__ import annotations

import logging
from typing import Optional

from common.decorators import timed
from common.exceptions import SysfsWriteError

from .sysfs import (
    VFIO_DRIVER,
    VFIO_NEW_ID_PATH,
    VFIO_REMOVE_ID_PATH,
    SysfsWriter,
    bind_path,
    unbind_path,
    write_to_file,
)

module_logger = logging.getLogger(__name__)


def normalize_vendor_device_id(vendor_device_id: str) -> str:
    """
    Convert a vendor:device pair into the form new_id/remove_id expect.

    Args:
        vendor_device_id: "8086:1520" or "8086 1520"

    Returns:
        Space separated pair, e.g. "8086 1520".
    """
    return " ".join(vendor_device_id.replace(":", " ").split())


@timed
def bind_device_to_vfio(
    bdf: str,
    host_driver: str,
    vendor_device_id: str,
    writer: Optional[SysfsWriter] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Bind a device to vfio-pci after unbinding it from its current driver.

    Args:
        bdf: PCI address as used under /sys/bus/pci/devices
        host_driver: Driver currently owning the device (informational)
        vendor_device_id: vendor:device pair registered with vfio-pci
        writer: Sysfs write primitive (default: write_to_file)
        logger: Logger for this operation (default: module logger)

    Raises:
        SysfsWriteError: If the unbind or new_id write fails
    """
    write = writer or write_to_file
    log = logger or module_logger
    device_id = normalize_vendor_device_id(vendor_device_id)

    # Unbind from the host driver
    unbind = unbind_path(bdf)
    log.info(
        "Unbinding device from driver",
        extra={"extra_data": {"device-bdf": bdf, "driver-path": unbind,
                              "host-driver": host_driver}},
    )
    write(unbind, bdf.encode())

    # Register the ID so vfio-pci claims matching devices
    log.info(
        "Writing vendor-device-id to vfio new-id path",
        extra={"extra_data": {"vendor-device-id": device_id,
                              "vfio-new-id-path": VFIO_NEW_ID_PATH}},
    )
    write(VFIO_NEW_ID_PATH, device_id.encode())

    bind = bind_path(VFIO_DRIVER)
    log.info(
        "Binding device to vfio driver",
        extra={"extra_data": {"device-bdf": bdf, "driver-path": bind}},
    )

    # new_id may already have bound the device, so "already bound" is expected
    try:
        write(bind, bdf.encode())
    except (SysfsWriteError, OSError) as e:
        log.debug(f"Ignoring vfio-pci bind failure for {bdf}: {e}")


@timed
def bind_device_to_host(
    bdf: str,
    host_driver: str,
    vendor_device_id: str,
    writer: Optional[SysfsWriter] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Bind a device back to its host driver after unbinding it from vfio-pci.

    Args:
        bdf: PCI address as used under /sys/bus/pci/devices
        host_driver: Driver that should own the device afterwards
        vendor_device_id: vendor:device pair to deregister from vfio-pci
        writer: Sysfs write primitive (default: write_to_file)
        logger: Logger for this operation (default: module logger)

    Raises:
        SysfsWriteError: If any of the three writes fails
    """
    write = writer or write_to_file
    log = logger or module_logger
    device_id = normalize_vendor_device_id(vendor_device_id)

    # Unbind from vfio-pci
    unbind = unbind_path(bdf)
    log.info(
        "Unbinding device from driver",
        extra={"extra_data": {"device-bdf": bdf, "driver-path": unbind}},
    )
    write(unbind, bdf.encode())

    # Keep future VFs with this ID away from vfio-pci
    log.info(
        "Removing vendor-device-id from vfio remove-id path",
        extra={"extra_data": {"vendor-device-id": device_id,
                              "vfio-remove-id-path": VFIO_REMOVE_ID_PATH}},
    )
    write(VFIO_REMOVE_ID_PATH, device_id.encode())

    bind = bind_path(host_driver)
    log.info(
        "Binding back device to host driver",
        extra={"extra_data": {"device-bdf": bdf, "driver-path": bind}},
    )
    write(bind, bdf.encode())
