"""
LibVirt Connection Manager

Handles connection lifecycle and domain lookup for hotplug operations.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

try:
    import libvirt
    LIBVIRT_AVAILABLE = True
except ImportError:
    LIBVIRT_AVAILABLE = False
    libvirt = None

from common.exceptions import DomainNotFoundError, LibvirtConnectionError

logger = logging.getLogger(__name__)


class LibvirtConnection:
    """
    Thread-safe libvirt connection manager.

    Connects lazily on first use and reconnects when the connection
    has dropped.
    """

    SYSTEM_URI = "qemu:///system"
    SESSION_URI = "qemu:///session"

    def __init__(self, uri: str = SYSTEM_URI):
        if not LIBVIRT_AVAILABLE:
            raise LibvirtConnectionError(
                uri,
                cause=ImportError(
                    "libvirt-python is not installed. "
                    "Install with: pip install libvirt-python"
                ),
            )
        self._uri = uri
        self._conn: Optional[libvirt.virConnect] = None
        self._lock = threading.RLock()

    @property
    def uri(self) -> str:
        """Get the connection URI."""
        return self._uri

    @property
    def is_connected(self) -> bool:
        """Check if connected to libvirt."""
        with self._lock:
            if self._conn is None:
                return False
            try:
                return self._conn.isAlive() == 1
            except libvirt.libvirtError:
                return False

    def connect(self) -> None:
        """
        Establish connection to libvirt.

        Raises:
            LibvirtConnectionError: If connection fails
        """
        with self._lock:
            if self.is_connected:
                return

            try:
                self._conn = libvirt.open(self._uri)
            except libvirt.libvirtError as e:
                self._conn = None
                raise LibvirtConnectionError(self._uri, cause=e) from e

            if self._conn is None:
                raise LibvirtConnectionError(self._uri)

            logger.info(f"Connected to libvirt: {self._uri}")

    def disconnect(self) -> None:
        """Close connection to libvirt."""
        with self._lock:
            if self._conn is not None:
                try:
                    self._conn.close()
                except libvirt.libvirtError as e:
                    logger.debug(f"Error closing libvirt connection: {e}")
                self._conn = None
                logger.info("Disconnected from libvirt")

    def lookup_domain(self, name: str):
        """
        Look up a domain by name, connecting if necessary.

        Raises:
            LibvirtConnectionError: If libvirt is unreachable
            DomainNotFoundError: If the domain does not exist
        """
        self.connect()
        with self._lock:
            try:
                return self._conn.lookupByName(name)
            except libvirt.libvirtError as e:
                raise DomainNotFoundError(name, cause=e) from e

    def __enter__(self) -> "LibvirtConnection":
        self.connect()
        return self

    def __exit__(self, *args) -> None:
        self.disconnect()
