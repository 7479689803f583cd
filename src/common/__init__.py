"""
vfio-passthrough Common Utilities

Errors, logging, settings and decorators shared by all packages.
"""

from .exceptions import (
    PassthroughError, DeviceError, BDFParseError, IOMMUGroupError,
    SysfsWriteError, DeviceNotFoundError, DuplicateDeviceError, DeviceBusyError,
    HotplugError, ConnectionError, LibvirtConnectionError, DomainNotFoundError,
    ConfigError, InvalidConfigError,
)
from .decorators import require_root, timed
from .logging_config import setup_logging, get_logger, LogContext
from .settings import PassthroughSettings, load_settings

__all__ = [
    # Exceptions
    "PassthroughError", "DeviceError", "BDFParseError", "IOMMUGroupError",
    "SysfsWriteError", "DeviceNotFoundError", "DuplicateDeviceError", "DeviceBusyError",
    "HotplugError", "ConnectionError", "LibvirtConnectionError", "DomainNotFoundError",
    "ConfigError", "InvalidConfigError",
    # Decorators
    "require_root", "timed",
    # Logging
    "setup_logging", "get_logger", "LogContext",
    # Settings
    "PassthroughSettings", "load_settings",
]
