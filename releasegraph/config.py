"""Configuration of a releasegraph installation and hierarchical runtime properties"""

import configparser
import logging
import os
import platform
from typing import Optional, Any

from pathlib import Path

APP_NAME = "releasegraph"

RUNTIME_SECTION = "runtime"

logger = logging.getLogger(__name__)

_home = os.path.expanduser("~")

xdg_config_home = os.environ.get("XDG_CONFIG_HOME") or os.path.join(_home, ".config")

if platform.system() == "Darwin":
    # macOS
    config_dir = Path("~/Library/Application Support/releasegraph").expanduser()
else:
    # Linux or others
    config_dir = Path(os.path.join(xdg_config_home, APP_NAME))


def get_config_file():
    return config_dir / f"{APP_NAME}.cfg"


class ConfigAccessor:
    """
    A dict-like accessor for configuration files.

    Besides plain section/key access, runtime properties are looked up
    hierarchically: for a module at node path ``Domain/Sub/app`` the sections
    ``runtime:Domain/Sub/app``, ``runtime:Domain/Sub``, ``runtime:Domain``
    and finally ``runtime`` are consulted in that order.

    Usage:
        config = ConfigAccessor()
        value = config.get('section', 'key', default='default')
        fetch = config.get_runtime_property(node_path, 'GIT_FETCH_PUSH_BEHAVIOR')
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize a ConfigAccessor with an optional config file path.

        Args:
            config_path: Path to the configuration file. If None, uses the default path.
        """
        if config_path is None:
            self.config_path = get_config_file()
        else:
            self.config_path = Path(config_path)

        # Keys are property names such as GIT_FETCH_PUSH_BEHAVIOR, keep their case
        self.config = configparser.ConfigParser(interpolation=None)
        self.config.optionxform = str  # type: ignore[assignment, method-assign]
        if self.config_path.exists():
            self.config.read(self.config_path)

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """
        Get a configuration value from the specified section and key.

        Args:
            section: The configuration section
            key: The configuration key
            default: Value to return if the section or key doesn't exist

        Returns:
            The configuration value if it exists, otherwise the default value
        """
        try:
            return self.config[section][key]
        except (KeyError, configparser.NoSectionError, configparser.NoOptionError):
            return default

    def set(self, section: str, key: str, value: str) -> None:
        """
        Set a configuration value.

        Args:
            section: The configuration section
            key: The configuration key
            value: The value to set
        """
        if not self.config.has_section(section):
            self.config.add_section(section)

        self.config[section][key] = value

    def get_runtime_property(
        self, node_path=None, key: str = "", default: Any = None
    ) -> Any:
        """
        Get a runtime property for a module, inherited from enclosing nodes.

        Args:
            node_path: NodePath of the module, or None for the global value
            key: Property name
            default: Value to return if no section defines the property

        Returns:
            The most specific value defined for the property
        """
        if node_path is not None:
            for node in node_path.ancestors():
                value = self.get(f"{RUNTIME_SECTION}:{node}", key)
                if value is not None:
                    return value
        return self.get(RUNTIME_SECTION, key, default)

    def save(self) -> None:
        """
        Save the current configuration to the config file.

        Fails gracefully if the file cannot be written (e.g., read-only filesystem).
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w") as configfile:
                self.config.write(configfile)
        except (OSError, IOError) as e:
            logger.warning(
                f"Could not save configuration to {self.config_path}: {e}. "
                "Configuration changes will not persist."
            )

    def sections(self) -> list:
        """
        Get all available sections in the config.

        Returns:
            List of section names
        """
        return self.config.sections()

    def options(self, section: str) -> list:
        """
        Get all options (keys) in a section.

        Args:
            section: The section name

        Returns:
            List of options in the section or empty list if section doesn't exist
        """
        try:
            return self.config.options(section)
        except configparser.NoSectionError:
            return []


def is_true(value: Optional[str]) -> bool:
    """Interpret a property value as a boolean flag."""
    if value is None:
        return False
    return str(value).strip().lower() in ("true", "yes", "1", "on")
