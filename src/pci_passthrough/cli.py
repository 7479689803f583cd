#!/usr/bin/env python3
"""
vfio-passthrough - Command Line Interface

Driver rebinding, IOMMU group inspection and device hotplug from the shell.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List

from common.decorators import require_root
from common.exceptions import PassthroughError
from common.logging_config import setup_logging
from common.settings import PassthroughSettings, load_settings

from .bdf import parse_bdf
from .config import DeviceInfo, DeviceType, VFIODev
from .iommu import enumerate_group
from .rebind import bind_device_to_host, bind_device_to_vfio
from .vfio import VFIODevice


def cmd_bdf(args, settings: PassthroughSettings):
    """Print the BDF of each sysfs device name."""
    for name in args.names:
        print(f"{name} -> {parse_bdf(name)}")


def cmd_group(args, settings: PassthroughSettings):
    """List the members of an IOMMU group."""
    iommu_root = args.iommu_root or settings.iommu_root
    members = enumerate_group(args.id, args.host_path, iommu_root)

    print(f"IOMMU group {Path(args.host_path).name}: {len(members)} device(s)")
    for member in members:
        print(f"  • {member.bdf}  ({member.id})")


@require_root
def cmd_bind_vfio(args, settings: PassthroughSettings):
    """Move a device from its host driver to vfio-pci."""
    bind_device_to_vfio(args.bdf, args.host_driver, args.vendor_device_id)
    print(f"✅ {args.bdf} bound to vfio-pci")


@require_root
def cmd_bind_host(args, settings: PassthroughSettings):
    """Move a device from vfio-pci back to its host driver."""
    bind_device_to_host(args.bdf, args.host_driver, args.vendor_device_id)
    print(f"✅ {args.bdf} bound to {args.host_driver}")


def _receiver(args, settings: PassthroughSettings):
    from hypervisor.connection import LibvirtConnection
    from hypervisor.receiver import LibvirtHotplugReceiver

    domain = args.domain or settings.domain
    if not domain:
        raise PassthroughError("No domain given (use --domain or set 'domain' in settings)")

    connection = LibvirtConnection(args.uri or settings.libvirt_uri)
    return LibvirtHotplugReceiver(connection, domain, live=settings.live)


def _device_id(args) -> str:
    return args.id or Path(args.host_path).name


class _GroupSnapshot:
    """Member list of a group that was attached by an earlier invocation."""

    def __init__(self, device_id: str, members: List[VFIODev]):
        self.id = device_id
        self._members = members

    def device_id(self) -> str:
        return self.id

    def get_device_info(self) -> List[VFIODev]:
        return list(self._members)


def cmd_attach(args, settings: PassthroughSettings):
    """Hotplug an IOMMU group into a libvirt domain."""
    info = DeviceInfo(id=_device_id(args), host_path=args.host_path)
    device = VFIODevice(info, iommu_root=settings.iommu_root)
    device.attach(_receiver(args, settings))

    bdfs = ", ".join(d.bdf for d in device.get_device_info())
    print(f"✅ Attached group {args.host_path} ({bdfs})")


def cmd_detach(args, settings: PassthroughSettings):
    """Hot-unplug an IOMMU group from a libvirt domain."""
    receiver = _receiver(args, settings)

    # A new process has no attach record, so re-enumerate the group
    device_id = _device_id(args)
    members = enumerate_group(device_id, args.host_path, settings.iommu_root)
    receiver.hotplug_remove_device(_GroupSnapshot(device_id, members), DeviceType.VFIO)
    print(f"✅ Detached group {args.host_path}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="VFIO device passthrough utility",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  vfio-passthrough bdf 0000:00:1c.0
  vfio-passthrough group /dev/vfio/12
  vfio-passthrough bind-vfio 0000:03:10.0 ixgbevf 8086:1520
  vfio-passthrough bind-host 0000:03:10.0 ixgbevf 8086:1520
  vfio-passthrough attach /dev/vfio/12 --domain guest1
        """
    )
    parser.add_argument("-c", "--config", type=Path, help="Settings file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--log-file", type=Path, help="Also log to this file")
    parser.add_argument("--json-logs", action="store_true", help="JSON file logs")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    bdf_parser = subparsers.add_parser("bdf", help="Parse sysfs device names")
    bdf_parser.add_argument("names", nargs="+", help="e.g. 0000:00:1c.0")
    bdf_parser.set_defaults(func=cmd_bdf)

    group_parser = subparsers.add_parser("group", help="List IOMMU group members")
    group_parser.add_argument("host_path", help="e.g. /dev/vfio/12")
    group_parser.add_argument("--id", default="dev", help="Device identifier for member IDs")
    group_parser.add_argument("--iommu-root", type=Path, help="IOMMU group tree root")
    group_parser.set_defaults(func=cmd_group)

    for name, func, help_text in (
        ("bind-vfio", cmd_bind_vfio, "Rebind a device to vfio-pci"),
        ("bind-host", cmd_bind_host, "Rebind a device to its host driver"),
    ):
        bind_parser = subparsers.add_parser(name, help=help_text)
        bind_parser.add_argument("bdf", help="PCI address, e.g. 0000:03:10.0")
        bind_parser.add_argument("host_driver", help="Host driver, e.g. ixgbevf")
        bind_parser.add_argument("vendor_device_id", help="e.g. 8086:1520")
        bind_parser.set_defaults(func=func)

    for name, func, help_text in (
        ("attach", cmd_attach, "Hotplug an IOMMU group into a VM"),
        ("detach", cmd_detach, "Hot-unplug an IOMMU group from a VM"),
    ):
        hotplug_parser = subparsers.add_parser(name, help=help_text)
        hotplug_parser.add_argument("host_path", help="e.g. /dev/vfio/12")
        hotplug_parser.add_argument("--domain", help="Libvirt domain name")
        hotplug_parser.add_argument("--uri", help="Libvirt URI")
        hotplug_parser.add_argument("--id", help="Device identifier")
        hotplug_parser.set_defaults(func=func)

    return parser


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        settings = load_settings(args.config)
        level = logging.DEBUG if args.verbose else settings.log_level_number
        setup_logging(
            level=level,
            log_file=args.log_file or settings.log_file,
            json_logs=args.json_logs or settings.json_logs,
        )
        args.func(args, settings)
    except (PassthroughError, PermissionError) as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
