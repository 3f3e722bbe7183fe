"""
Script Template Loader

Renders a provisioning plan as a standalone shell script using Jinja2
templates looked up in several locations.
"""

from __future__ import annotations

import logging
import shlex
import unicodedata
from pathlib import Path
from typing import Optional, List

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, TemplateNotFound
from jinja2 import TemplateError as JinjaTemplateError

from common.exceptions import ConfigMalformedError, TemplateNotFoundError, TemplateRenderError

from ..core.steps import build_plan, derive_disk_path
from ..core.vm_config import ProvisionerSettings, VMDescription

logger = logging.getLogger(__name__)

SCRIPT_TEMPLATE = "provision.sh.j2"


def shell_comment(value) -> str:
    """Escape control characters so ``value`` stays inside one ``#`` comment line."""
    return "".join(
        repr(c)[1:-1] if unicodedata.category(c) == "Cc" else c
        for c in str(value)
    )


class TemplateLoader:
    """
    Loads script templates from multiple locations.

    Search order:
    1. Local templates directory (within package)
    2. System templates (/usr/share/vm-provisioner/templates)
    3. User templates (~/.config/vm-provisioner/templates)
    """

    TEMPLATE_PATHS = [
        Path(__file__).parent,
        Path("/usr/share/vm-provisioner/templates"),
        Path.home() / ".config/vm-provisioner/templates",
    ]

    def __init__(self, additional_paths: Optional[List[Path]] = None):
        self._paths = list(additional_paths or []) + list(self.TEMPLATE_PATHS)
        self._env = self._create_environment()

    def _create_environment(self) -> Environment:
        """Create Jinja2 environment with all template paths."""
        loaders = []

        for path in self._paths:
            if path.exists() and path.is_dir():
                loaders.append(FileSystemLoader(str(path)))
                logger.debug(f"Added template path: {path}")

        env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        env.filters["shell_join"] = shlex.join
        env.filters["shell_quote"] = shlex.quote
        env.filters["shell_comment"] = shell_comment
        return env

    def template_exists(self, name: str) -> bool:
        """Check if a template exists."""
        try:
            self._env.get_template(name)
        except TemplateNotFound:
            return False
        return True

    def list_templates(self) -> List[str]:
        """List all available script templates."""
        templates = []
        for path in self._paths:
            if path.exists():
                templates.extend(f.name for f in path.glob("*.sh.j2"))
        return sorted(set(templates))

    def render(self, name: str, **variables) -> str:
        """
        Render a template with variables.

        Raises:
            TemplateNotFoundError: If no search path has the template
            TemplateRenderError: If rendering fails
        """
        try:
            template = self._env.get_template(name)
        except TemplateNotFound as e:
            raise TemplateNotFoundError(name) from e

        try:
            return template.render(**variables)
        except JinjaTemplateError as e:
            raise TemplateRenderError(name, str(e)) from e


def render_script(
    description: VMDescription,
    settings: Optional[ProvisionerSettings] = None,
    loader: Optional[TemplateLoader] = None,
    template: str = SCRIPT_TEMPLATE,
) -> str:
    """
    Render the provisioning plan for ``description`` as a shell script.

    The script runs the same commands, in the same order, as the
    sequencer and stops at the first failing one.

    Raises:
        ConfigMalformedError: If the description is invalid
        TemplateNotFoundError: If the template cannot be found
        TemplateRenderError: If rendering fails
    """
    errors = description.validate()
    if errors:
        raise ConfigMalformedError("; ".join(errors))

    settings = settings or ProvisionerSettings()
    loader = loader or TemplateLoader()

    steps = build_plan(description, settings)
    return loader.render(
        template,
        vm=description,
        vboxmanage=settings.vboxmanage,
        disk_path=str(derive_disk_path(description.name, settings.vm_root, settings.disk_format)),
        steps=[
            {"name": step.name, "label": step.failure_label, "argv": step.command(settings.vboxmanage)}
            for step in steps
        ],
    )
