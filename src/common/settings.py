"""
Passthrough settings - persisted operator configuration.

Settings live in ``~/.config/vfio-passthrough/settings.json``. A missing
file means defaults; anything unreadable is a configuration error.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import List, Optional, Union

from .exceptions import InvalidConfigError

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path.home() / ".config/vfio-passthrough/settings.json"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class PassthroughSettings:
    """Operator configuration for device passthrough."""
    iommu_root: Path = Path("/sys/kernel/iommu_groups")
    libvirt_uri: str = "qemu:///system"
    domain: Optional[str] = None
    live: bool = True
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    json_logs: bool = False

    @property
    def log_level_number(self) -> int:
        return getattr(logging, self.log_level.upper(), logging.INFO)

    def validate(self) -> List[str]:
        """
        Validate settings and return list of errors.

        Returns:
            List of error messages. Empty if valid.
        """
        errors = []

        if not self.libvirt_uri:
            errors.append("libvirt URI is required")

        if self.log_level.upper() not in LOG_LEVELS:
            errors.append(f"Unknown log level: {self.log_level}")

        if not self.iommu_root.is_absolute():
            errors.append(f"IOMMU root must be an absolute path: {self.iommu_root}")

        return errors

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "iommu_root": str(self.iommu_root),
            "libvirt_uri": self.libvirt_uri,
            "domain": self.domain,
            "live": self.live,
            "log_level": self.log_level,
            "log_file": str(self.log_file) if self.log_file else None,
            "json_logs": self.json_logs,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PassthroughSettings":
        """Create settings from dictionary."""
        known = {f.name for f in fields(cls)}
        for key in data:
            if key not in known:
                raise InvalidConfigError(key, data[key], "unknown setting")

        settings = cls()
        if "iommu_root" in data:
            settings.iommu_root = Path(data["iommu_root"])
        if "libvirt_uri" in data:
            settings.libvirt_uri = data["libvirt_uri"]
        if "domain" in data:
            settings.domain = data["domain"]
        if "live" in data:
            settings.live = bool(data["live"])
        if "log_level" in data:
            settings.log_level = str(data["log_level"])
        if data.get("log_file"):
            settings.log_file = Path(data["log_file"])
        if "json_logs" in data:
            settings.json_logs = bool(data["json_logs"])
        return settings


def load_settings(path: Optional[Union[str, Path]] = None) -> PassthroughSettings:
    """
    Load settings from a JSON file.

    Args:
        path: Settings file (default: ~/.config/vfio-passthrough/settings.json)

    Returns:
        Loaded settings, or defaults when the file does not exist.

    Raises:
        InvalidConfigError: If the file is not valid JSON or fails validation
    """
    path = Path(path) if path else DEFAULT_SETTINGS_PATH

    if not path.exists():
        logger.debug(f"No settings file at {path}, using defaults")
        return PassthroughSettings()

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidConfigError(str(path), "<file>", f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise InvalidConfigError(str(path), type(data).__name__, "expected a JSON object")

    settings = PassthroughSettings.from_dict(data)
    errors = settings.validate()
    if errors:
        raise InvalidConfigError(str(path), "<file>", "; ".join(errors))

    logger.debug(f"Loaded settings from {path}")
    return settings
