"""
IOMMU group enumeration.

IOMMU groups are the unit of VFIO passthrough - every device in a
group must be handed to the VM together.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, List, Optional, Union

from common.exceptions import IOMMUGroupError

from .bdf import parse_bdf
from .config import MAX_DEV_ID_SIZE, SYS_IOMMU_PATH, VFIODev, make_name_id

# Signature of the directory lister: (path) -> entry names
DirLister = Callable[[Path], List[str]]


def list_dir_sorted(path: Path) -> List[str]:
    """List directory entry names sorted by name."""
    return sorted(os.listdir(path))


def iommu_group_name(host_path: Union[str, Path]) -> str:
    """
    Get the IOMMU group name from a host path.

    Args:
        host_path: e.g. "/dev/vfio/12" or "/sys/kernel/iommu_groups/12"

    Returns:
        Last path segment, e.g. "12".
    """
    return Path(host_path).name


def iommu_devices_path(
    host_path: Union[str, Path],
    iommu_root: Union[str, Path, None] = None,
) -> Path:
    """Get the ``devices`` directory of the group named by ``host_path``."""
    root = Path(iommu_root) if iommu_root is not None else SYS_IOMMU_PATH
    return root / iommu_group_name(host_path) / "devices"


def list_group_entries(
    devices_path: Path,
    list_dir: Optional[DirLister] = None,
) -> List[str]:
    """
    List the member entries of an IOMMU group.

    Raises:
        IOMMUGroupError: If the directory cannot be listed
    """
    lister = list_dir or list_dir_sorted
    try:
        return list(lister(devices_path))
    except OSError as e:
        raise IOMMUGroupError(str(devices_path), cause=e) from e


def enumerate_group(
    device_id: str,
    host_path: Union[str, Path],
    iommu_root: Union[str, Path, None] = None,
    list_dir: Optional[DirLister] = None,
) -> List[VFIODev]:
    """
    Build one VFIODev per member of an IOMMU group, in listing order.

    Args:
        device_id: Identifier of the owning device, used to derive member IDs
        host_path: Host path naming the group
        iommu_root: Root of the IOMMU group tree
        list_dir: Directory lister (default: sorted os.listdir)

    Returns:
        List of VFIODev.

    Raises:
        IOMMUGroupError: If the group cannot be listed
        BDFParseError: If a member entry is not a PCI address
    """
    entries = list_group_entries(iommu_devices_path(host_path, iommu_root), list_dir)

    return [
        VFIODev(
            id=make_name_id("vfio", f"{device_id}{index}", MAX_DEV_ID_SIZE),
            bdf=parse_bdf(entry),
        )
        for index, entry in enumerate(entries)
    ]
