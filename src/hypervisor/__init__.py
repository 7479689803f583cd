"""
Hypervisor integration - libvirt-backed hotplug receiver.
"""

from .connection import LibvirtConnection
from .receiver import LibvirtHotplugReceiver

__all__ = ["LibvirtConnection", "LibvirtHotplugReceiver"]
