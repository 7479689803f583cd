"""
Device XML Template Loader

Template loading from multiple paths so operators can override the
shipped device XML.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, List

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, Template, TemplateNotFound

logger = logging.getLogger(__name__)


class TemplateLoader:
    """
    Loads device XML templates from multiple locations.

    Search order:
    1. User templates (~/.config/vfio-passthrough/templates)
    2. System templates (/usr/share/vfio-passthrough/templates)
    3. Templates shipped with this package
    """

    TEMPLATE_PATHS = [
        Path.home() / ".config/vfio-passthrough/templates",
        Path("/usr/share/vfio-passthrough/templates"),
        Path(__file__).parent,
    ]

    def __init__(self, additional_paths: Optional[List[Path]] = None):
        self._paths = list(additional_paths or []) + list(self.TEMPLATE_PATHS)
        self._env = self._create_environment()

    def _create_environment(self) -> Environment:
        """Create Jinja2 environment with all existing template paths."""
        loaders = []

        for path in self._paths:
            if path.exists() and path.is_dir():
                loaders.append(FileSystemLoader(str(path)))
                logger.debug(f"Added template path: {path}")

        return Environment(
            loader=ChoiceLoader(loaders),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def get_template(self, name: str) -> Optional[Template]:
        """
        Get a template by name.

        Args:
            name: Template filename (e.g., "hostdev.xml.j2")

        Returns:
            Template object or None
        """
        try:
            return self._env.get_template(name)
        except TemplateNotFound:
            logger.warning(f"Template not found: {name}")
            return None

    def render(self, name: str, **variables) -> Optional[str]:
        """
        Render a template with variables.

        Returns:
            Rendered XML string or None if the template is missing
        """
        template = self.get_template(name)
        if template:
            return template.render(**variables)
        return None

    def list_templates(self) -> List[str]:
        """List all available templates."""
        templates = []
        for path in self._paths:
            if path.exists():
                templates.extend(f.name for f in path.glob("*.xml.j2"))
        return sorted(set(templates))


# Global loader instance
_loader: Optional[TemplateLoader] = None


def get_template_loader() -> TemplateLoader:
    """Get the global template loader."""
    global _loader
    if _loader is None:
        _loader = TemplateLoader()
    return _loader
