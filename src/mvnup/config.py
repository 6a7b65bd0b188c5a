import os
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, field_validator

CONFIG_DIR = Path.home() / ".mvnup"
CONFIG_FILE = CONFIG_DIR / "config"

DEFAULT_MIRROR = "https://archive.apache.org/dist/"
DEFAULT_PRODUCT_PATH = "maven/maven-3/"
DEFAULT_TIMEOUT = 30.0


class Settings(BaseModel):
    """resolved runtime settings (defaults < config file < environment)."""
    mirror: str = DEFAULT_MIRROR
    product_path: str = DEFAULT_PRODUCT_PATH
    state_dir: Path = CONFIG_DIR
    cache_dir: Path = CONFIG_DIR / "cache"
    install_dir: Path = CONFIG_DIR / "versions"
    bin_dir: Path = Path.home() / ".local" / "bin"
    timeout: float = DEFAULT_TIMEOUT

    @field_validator("state_dir", "cache_dir", "install_dir", "bin_dir")
    @classmethod
    def absolute_dir(cls, value: Path) -> Path:
        # stored in install receipts, so always absolute
        return value.expanduser().resolve()

    @property
    def receipt_file(self) -> Path:
        return self.state_dir / "installed.json"


_KEYS = {
    "MVNUP_MIRROR": "mirror",
    "MVNUP_PRODUCT_PATH": "product_path",
    "MVNUP_CACHE_DIR": "cache_dir",
    "MVNUP_INSTALL_DIR": "install_dir",
    "MVNUP_BIN_DIR": "bin_dir",
    "MVNUP_TIMEOUT": "timeout",
}


def read_config_file(path: Path = CONFIG_FILE) -> Dict[str, str]:
    """read KEY=value lines from the config file."""
    config = {}
    if not path.exists():
        return config

    try:
        with open(path, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = line.split("=", 1)
                config[key.strip()] = value.strip()
    except (IOError, PermissionError, OSError):
        # if we can't read the file, treat as not configured
        return {}
    return config


def load_settings(mirror: Optional[str] = None, config_file: Path = CONFIG_FILE) -> Settings:
    """
    build settings from defaults, the config file and MVNUP_* environment variables.

    args:
        mirror: explicit mirror url (e.g. from the command line), wins over everything.
        config_file: path of the key=value config file.
    """
    values = {}
    for source in (read_config_file(config_file), os.environ):
        for key, field in _KEYS.items():
            if source.get(key):
                values[field] = source[key]
    if mirror:
        values["mirror"] = mirror
    return Settings(**values)


def set_config_value(key: str, value: str, config_file: Path = CONFIG_FILE):
    """set one key in the config file, preserving other config values."""
    if key not in _KEYS:
        raise ValueError(f"unknown config key '{key}', expected one of: {', '.join(_KEYS)}")

    config = read_config_file(config_file)
    config[key] = value

    config_file.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(config_file, "w") as f:
            for k, v in config.items():
                f.write(f"{k}={v}\n")
    except (IOError, PermissionError, OSError) as e:
        raise RuntimeError(f"failed to write config file: {e}") from e
