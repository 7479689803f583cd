"""
PCI address parsing.

Sysfs names devices ``<domain>:<bus>:<slot>.<func>`` (e.g. ``0000:00:1c.0``);
the hypervisor side only needs the ``<bus>:<slot>.<func>`` part.
"""

from typing import Tuple

from common.exceptions import BDFParseError

DEFAULT_PCI_DOMAIN = "0000"


def parse_bdf(device_sys_str: str) -> str:
    """
    Return the BDF of a PCI device from its sysfs entry name.

    Args:
        device_sys_str: Entry name such as "0000:02:10.0"

    Returns:
        BDF string such as "02:10.0".

    Raises:
        BDFParseError: If the name does not have exactly three
            colon-separated segments.
    """
    tokens = device_sys_str.split(":")
    if len(tokens) != 3:
        raise BDFParseError(device_sys_str)

    return device_sys_str.split(":", 1)[1]


def split_bdf(bdf: str) -> Tuple[str, str, str]:
    """
    Split a BDF into (bus, slot, function).

    Args:
        bdf: BDF string such as "02:10.0"

    Returns:
        Tuple of hex strings, e.g. ("02", "10", "0").

    Raises:
        BDFParseError: If the string is not bus:slot.func
    """
    bus, sep, slot_func = bdf.partition(":")
    slot, dot, func = slot_func.partition(".")
    if not sep or not dot or not bus or not slot or not func or ":" in slot_func:
        raise BDFParseError(bdf)
    return bus, slot, func


def full_address(bdf: str, domain: str = DEFAULT_PCI_DOMAIN) -> str:
    """Prefix a BDF with its PCI domain ("02:10.0" -> "0000:02:10.0")."""
    split_bdf(bdf)
    return f"{domain}:{bdf}"
