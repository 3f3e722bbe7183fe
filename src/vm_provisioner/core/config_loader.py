"""
Configuration Loader

Reads a TOML document with a ``[virtual_machine]`` table and turns it
into a validated VMDescription.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Optional, Union

from common.exceptions import ConfigMalformedError, ConfigUnreadableError

from .vm_config import VMDescription

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("vm_config.toml")
SECTION = "virtual_machine"
REQUIRED_FIELDS = ("name", "os_type", "memory", "cpus", "disk_size")


def parse_config(text: str, source: Optional[str] = None) -> VMDescription:
    """
    Parse configuration text into a VMDescription.

    Args:
        text: TOML document
        source: Where the text came from, used in error messages

    Raises:
        ConfigMalformedError: On syntax errors, a missing section, or
            missing/invalid fields
    """
    try:
        document = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ConfigMalformedError(f"Failed to parse TOML: {e}", path=source, cause=e) from e

    section = document.get(SECTION)
    if section is None:
        raise ConfigMalformedError(f"missing [{SECTION}] section", path=source)
    if not isinstance(section, dict):
        raise ConfigMalformedError(f"'{SECTION}' must be a table", path=source)

    missing = [name for name in REQUIRED_FIELDS if name not in section]
    if missing:
        raise ConfigMalformedError(
            f"missing required field(s): {', '.join(missing)}", path=source
        )

    unknown = sorted(set(section) - set(REQUIRED_FIELDS) - {"iso_path"})
    if unknown:
        logger.warning(f"Ignoring unknown [{SECTION}] field(s): {', '.join(unknown)}")

    try:
        description = VMDescription.from_dict(section)
    except ValueError as e:
        raise ConfigMalformedError(str(e), path=source, cause=e) from e

    logger.debug(f"Loaded description for VM '{description.name}' from {source or '<string>'}")
    return description


def load_config(path: Union[str, Path] = DEFAULT_CONFIG_PATH) -> VMDescription:
    """
    Read and parse a configuration file.

    Raises:
        ConfigUnreadableError: If the file cannot be read
        ConfigMalformedError: If it does not describe a valid VM
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigUnreadableError(str(path), cause=e) from e

    return parse_config(text, source=str(path))
