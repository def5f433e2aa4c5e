"""Configuration for ClipHistory.

Settings live in ``<user config dir>/cliphistory/config.json``. Values from the
environment (or a ``.env`` file) override what the file says, which is handy
for pointing a development build at a scratch MySQL database.
"""

from __future__ import annotations

import logging
import os
import platform
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from cliphistory.errors import ConfigurationError

logger = logging.getLogger(__name__)

APP_DIR_NAME = "cliphistory"
DEFAULT_MAX_ITEMS = 100


def user_config_dir() -> Path:
    system = platform.system()
    if system == "Windows":
        appdata = os.getenv("APPDATA")
        if appdata:
            return Path(appdata)
        return Path.home() / "AppData" / "Roaming"
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support"
    xdg = os.getenv("XDG_CONFIG_HOME")
    return Path(xdg) if xdg else Path.home() / ".config"


def default_config_path() -> Path:
    return user_config_dir() / APP_DIR_NAME / "config.json"


class StorageType(str, Enum):
    JSON = "json"
    MYSQL = "mysql"


class MySQLConfig(BaseModel):
    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str = ""
    database: str = "cliphistory"


class StorageConfig(BaseModel):
    type: StorageType = StorageType.JSON
    json_path: Optional[Path] = None
    custom_path: bool = False
    image_dir: Optional[Path] = None
    mysql: MySQLConfig = Field(default_factory=MySQLConfig)
    max_items: int = DEFAULT_MAX_ITEMS

    @field_validator("max_items", mode="before")
    @classmethod
    def _fallback_max_items(cls, value: Any) -> Any:
        if value is None:
            return DEFAULT_MAX_ITEMS
        try:
            if int(value) <= 0:
                return DEFAULT_MAX_ITEMS
        except (TypeError, ValueError):
            return value
        return value

    def data_dir(self) -> Path:
        """Directory holding the JSON history document."""
        if self.custom_path and self.json_path:
            return Path(self.json_path).expanduser().resolve()
        return user_config_dir() / APP_DIR_NAME / "history"

    def resolved_image_dir(self) -> Path:
        if self.image_dir:
            return Path(self.image_dir).expanduser().resolve()
        if self.type == StorageType.MYSQL:
            return user_config_dir() / APP_DIR_NAME / "mysql_images"
        return self.data_dir() / "images"


class AppConfig(BaseModel):
    storage: StorageConfig = Field(default_factory=StorageConfig)
    poll_interval: float = Field(default=0.5, gt=0)
    queue_size: int = Field(default=10, gt=0)


_ENV_STORAGE_KEYS = {
    "CLIPHISTORY_STORAGE": "type",
    "CLIPHISTORY_MAX_ITEMS": "max_items",
    "CLIPHISTORY_IMAGE_DIR": "image_dir",
}

_ENV_MYSQL_KEYS = {
    "MYSQL_HOST": "host",
    "MYSQL_PORT": "port",
    "MYSQL_USER": "user",
    "MYSQL_PASS": "password",
    "MYSQL_DB": "database",
}


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    storage = data.setdefault("storage", {})
    mysql = storage.setdefault("mysql", {})

    for env_key, field in _ENV_STORAGE_KEYS.items():
        value = os.getenv(env_key)
        if value:
            storage[field] = value

    data_dir = os.getenv("CLIPHISTORY_DATA_DIR")
    if data_dir:
        storage["json_path"] = data_dir
        storage["custom_path"] = True

    for env_key, field in _ENV_MYSQL_KEYS.items():
        value = os.getenv(env_key)
        if value is not None:
            mysql[field] = value

    return data


def load_config(path: Optional[Path] = None, *, env_path: Optional[Path] = None) -> AppConfig:
    """Load the application config, falling back to defaults.

    Raises:
        ConfigurationError: The file exists but does not validate.
    """
    load_dotenv(env_path)
    config_path = Path(path) if path else default_config_path()

    data: Dict[str, Any] = {}
    if config_path.exists():
        try:
            data = AppConfig.model_validate_json(
                config_path.read_text(encoding="utf-8")
            ).model_dump(mode="json")
        except (OSError, ValidationError) as e:
            raise ConfigurationError(f"Invalid config file {config_path}", e)
    else:
        logger.debug("No config file at %s, using defaults", config_path)

    try:
        return AppConfig.model_validate(_apply_env_overrides(data))
    except ValidationError as e:
        raise ConfigurationError("Invalid configuration override", e)


def save_config(config: AppConfig, path: Optional[Path] = None) -> Path:
    config_path = Path(path) if path else default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
    logger.info("Saved config to %s", config_path)
    return config_path
