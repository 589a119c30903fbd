import configparser

import pytest
from pydantic import ValidationError

from pixcap_cli.exceptions import ConfigurationError
from pixcap_cli.models.config import HarvestConfig
from pixcap_cli.storage.config_manager import ConfigManager


@pytest.fixture
def config_file(tmp_path):
    return tmp_path / "pixcap-cli" / "config.ini"


def test_missing_file_uses_defaults(config_file):
    config = ConfigManager(config_file).load_config()

    assert config.base_url == "https://pixcap.com"
    assert config.catalog_url == "https://pixcap.com/3d-icon-packs"
    assert config.mapping_file == "slug-uuid-mapping.json"
    assert config.extension == "glb"
    assert config.max_pages == 50
    assert config.cookies_file == str(config_file.parent / "cookies.json")
    assert not config_file.exists()


def test_saved_settings_and_cli_overrides(config_file):
    manager = ConfigManager(config_file)
    manager.save_new_config({"output_dir": "/data/icons", "max_pages": 5})

    config = ConfigManager(config_file).load_config({"max_pages": 7, "dry_run": True})

    assert config.output_dir == "/data/icons"
    assert config.max_pages == 7
    assert config.dry_run is True
    assert config.headless is False


def test_missing_keys_are_migrated(config_file):
    config_file.parent.mkdir(parents=True)
    config_file.write_text("[DEFAULT]\noutput_dir = icons\n", encoding="utf-8")

    config = ConfigManager(config_file).load_config()

    parser = configparser.ConfigParser(interpolation=None)
    parser.read(config_file, encoding="utf-8")
    assert config.output_dir == "icons"
    assert parser["DEFAULT"]["output_dir"] == "icons"
    assert parser["DEFAULT"]["resolution_timeout"] == "15.0"


def test_invalid_ini_value(config_file):
    config_file.parent.mkdir(parents=True)
    config_file.write_text("[DEFAULT]\nmax_pages = lots\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="Invalid value"):
        ConfigManager(config_file).load_config()


def test_failed_validation(config_file):
    with pytest.raises(ConfigurationError, match="validation failed"):
        ConfigManager(config_file).load_config({"base_url": "pixcap.com"})


def test_displayed_config_hides_internal_fields(config_file):
    data = ConfigManager(config_file).get_config_as_dict()

    assert "config_path" not in data
    assert "dry_run" not in data
    assert data["lang"] == "en"


def test_values_are_normalized(tmp_path):
    config = HarvestConfig(
        base_url="https://pixcap.com/",
        extension=".GLB",
        config_path=str(tmp_path),
    )
    assert config.base_url == "https://pixcap.com"
    assert config.extension == "glb"


@pytest.mark.parametrize(
    "field, value",
    [
        ("catalog_path", "3d-icon-packs"),
        ("extension", "g/lb"),
        ("resolution_timeout", 0),
        ("max_pages", 0),
        ("max_pages", 5000),
    ],
)
def test_invalid_values_rejected(tmp_path, field, value):
    with pytest.raises(ValidationError):
        HarvestConfig(**{field: value}, config_path=str(tmp_path))
