"""
vfio-passthrough Exception Hierarchy

Provides clear, actionable error messages with structured information
for logging, operator feedback, and programmatic error handling.
"""

from typing import Optional, Dict, Any


class PassthroughError(Exception):
    """
    Base exception for all vfio-passthrough errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context as key-value pairs
        cause: Original exception that caused this error
        recoverable: Whether the error is recoverable
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.recoverable = recoverable

    def __str__(self):
        s = f"[{self.code}] {self.message}"
        if self.details:
            s += f" (details: {self.details})"
        if self.cause:
            s += f" caused by: {self.cause}"
        return s

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# Device-related errors
# =============================================================================

class DeviceError(PassthroughError):
    """Base for device-related errors."""
    pass


class BDFParseError(DeviceError):
    """A sysfs device entry name is not a domain:bus:slot.func address."""
    def __init__(self, device_sys_str: str):
        super().__init__(
            f"Incorrect number of tokens found while parsing bdf for device: {device_sys_str}",
            code="BDF_MALFORMED",
            details={"device": device_sys_str},
            recoverable=False,
        )


class IOMMUGroupError(DeviceError):
    """IOMMU group member directory could not be listed."""
    def __init__(self, path: str, cause: Optional[Exception] = None):
        super().__init__(
            f"Cannot list IOMMU group devices at {path}",
            code="IOMMU_GROUP_UNREADABLE",
            details={"path": path},
            cause=cause,
        )


class SysfsWriteError(DeviceError):
    """A write to a sysfs control file failed."""
    def __init__(self, path: str, data: str, cause: Optional[Exception] = None):
        super().__init__(
            f"Failed to write '{data}' to {path}",
            code="SYSFS_WRITE_FAILED",
            details={"path": path, "data": data},
            cause=cause,
        )


class DeviceNotFoundError(DeviceError):
    """No device registered under the given identifier."""
    def __init__(self, device_id: str):
        super().__init__(
            f"Device '{device_id}' not found",
            code="DEVICE_NOT_FOUND",
            details={"device_id": device_id},
            recoverable=False,
        )


class DuplicateDeviceError(DeviceError):
    """A device with the same identifier is already registered."""
    def __init__(self, device_id: str):
        super().__init__(
            f"Device '{device_id}' already exists",
            code="DEVICE_EXISTS",
            details={"device_id": device_id},
        )


class DeviceBusyError(DeviceError):
    """Device cannot be operated on in its current state."""
    def __init__(self, device_id: str, reason: str):
        super().__init__(
            f"Device '{device_id}' is busy: {reason}",
            code="DEVICE_BUSY",
            details={"device_id": device_id, "reason": reason},
        )


# =============================================================================
# Hotplug errors
# =============================================================================

class HotplugError(PassthroughError):
    """Hypervisor refused to add or remove a device."""
    def __init__(self, device_id: str, operation: str, reason: str,
                 cause: Optional[Exception] = None):
        super().__init__(
            f"Failed to {operation} device '{device_id}': {reason}",
            code="HOTPLUG_FAILED",
            details={"device_id": device_id, "operation": operation, "reason": reason},
            cause=cause,
        )


# =============================================================================
# Connection errors
# =============================================================================

class ConnectionError(PassthroughError):
    """Base for connection-related errors."""
    pass


class LibvirtConnectionError(ConnectionError):
    """Failed to connect to libvirt."""
    def __init__(self, uri: str, cause: Optional[Exception] = None):
        super().__init__(
            f"Cannot connect to libvirt at {uri}",
            code="LIBVIRT_CONNECTION_FAILED",
            details={"uri": uri},
            cause=cause,
        )


class DomainNotFoundError(ConnectionError):
    """Libvirt domain does not exist."""
    def __init__(self, domain_name: str, cause: Optional[Exception] = None):
        super().__init__(
            f"Virtual machine '{domain_name}' not found",
            code="DOMAIN_NOT_FOUND",
            details={"domain": domain_name},
            cause=cause,
            recoverable=False,
        )


# =============================================================================
# Configuration errors
# =============================================================================

class ConfigError(PassthroughError):
    """Base for configuration errors."""
    pass


class InvalidConfigError(ConfigError):
    """Invalid configuration."""
    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration: {field}={value}: {reason}",
            code="INVALID_CONFIG",
            details={"field": field, "value": str(value), "reason": reason},
        )
