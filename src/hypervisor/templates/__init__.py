"""
Device XML templates for libvirt hotplug.
"""

from .loader import TemplateLoader, get_template_loader

__all__ = ["TemplateLoader", "get_template_loader"]
