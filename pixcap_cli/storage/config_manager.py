"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from pixcap_cli.exceptions import ConfigurationError
from pixcap_cli.models.config import HarvestConfig

log = logging.getLogger(__name__)

COOKIES_FILENAME = "cookies.json"


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser(interpolation=None)

    @property
    def config_dir(self) -> Path:
        return self.config_file_path.parent

    def default_settings(self) -> dict[str, Any]:
        """Model defaults, with the cookie bundle kept next to the config file."""
        defaults = HarvestConfig.model_construct()
        settings = {key: getattr(defaults, key) for key in HarvestConfig.get_ini_keys()}
        settings["cookies_file"] = str(self.config_dir / COOKIES_FILENAME)
        return settings

    def load_config(self, cli_options: dict[str, Any] | None = None) -> HarvestConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        A missing file is not an error: the defaults apply.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated HarvestConfig object.

        Raises:
            ConfigurationError: If the file cannot be parsed or validation fails.
        """
        settings = self.default_settings()

        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing configuration file: {e}") from e

            if self._migrate_if_needed():
                log.info(
                    "[yellow]Configuration file was updated with new default values."
                    "[/yellow]"
                )
            settings.update(self._get_config_as_dict())
        else:
            log.debug(f"No config file at '{self.config_file_path}', using defaults.")

        if cli_options:
            settings.update(cli_options)

        if not settings.get("cookies_file"):
            settings["cookies_file"] = str(self.config_dir / COOKIES_FILENAME)

        try:
            return HarvestConfig(**settings, config_path=str(self.config_dir))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any] | None = None) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: Values that replace the defaults.
        """
        values = self.default_settings()
        values.update(settings or {})

        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {
            key: self._to_ini_value(values[key]) for key in sorted(values)
        }

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    @staticmethod
    def _to_ini_value(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        return "" if value is None else str(value)

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        defaults = HarvestConfig.model_construct()
        try:
            return {
                "base_url": section.get("base_url", defaults.base_url),
                "catalog_path": section.get("catalog_path", defaults.catalog_path),
                "lang": section.get("lang", defaults.lang),
                "output_dir": section.get("output_dir", defaults.output_dir),
                "mapping_file": section.get("mapping_file", defaults.mapping_file),
                "extension": section.get("extension", defaults.extension),
                "cookies_file": section.get("cookies_file", ""),
                "headless": section.getboolean("headless", defaults.headless),
                "navigation_timeout": section.getfloat(
                    "navigation_timeout", defaults.navigation_timeout
                ),
                "resolution_timeout": section.getfloat(
                    "resolution_timeout", defaults.resolution_timeout
                ),
                "download_timeout": section.getfloat(
                    "download_timeout", defaults.download_timeout
                ),
                "max_pages": section.getint("max_pages", defaults.max_pages),
                "dump_diagnostics": section.getboolean(
                    "dump_diagnostics", defaults.dump_diagnostics
                ),
            }
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        config_section = self._parser["DEFAULT"]
        needs_saving = False

        for key, default_value in self.default_settings().items():
            if key not in config_section:
                config_section[key] = self._to_ini_value(default_value)
                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{config_section[key]}'."
                )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving

    def get_config_as_dict(self) -> dict[str, Any]:
        """Returns the effective settings for display."""
        return self.load_config().model_dump(exclude={"config_path", "dry_run"})
