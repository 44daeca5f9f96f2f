import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from loguru import logger

from photofolio.errors import ConfigError

# === PATH CONFIGURATION ===
DATA_DIR = Path("data")
APP_CONFIG_FILE = Path.home() / ".config" / "photofolio" / "settings.json"
CONFIG_FILE = Path("settings.json")

# Environment overrides: PHOTOFOLIO_DRIVE__FOLDER_ID -> drive.folder_id
ENV_PREFIX = "PHOTOFOLIO_"

# === SCOPES ===
SCOPES = [
    "https://www.googleapis.com/auth/drive.readonly"
]

DEFAULTS = {
    "drive": {
        "folder_id": None,
        "credentials_file": str(DATA_DIR / "credentials.json"),
        "token_file": str(DATA_DIR / "token.pickle"),
        "service_account_file": None,
    },
    "deploy": {
        "site_url": None,
        "build_hook_url": None,
    },
    "sync": {
        "max_tag_bytes": 1024,
        "workers": 1,
    },
    "log": {
        "dir": None,
    },
}


class Settings:
    """Layered JSON settings with dotted-key access."""

    def __init__(self, data: Dict[str, Any]):
        self._data = data

    def get(self, key: str, default: Any = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        node: Any = self._data
        for part in key.split("."):
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return default if node is None else node

    def require(self, key: str) -> Any:
        value = self.get(key)
        if value is None or value == "":
            env_name = ENV_PREFIX + key.upper().replace(".", "__")
            raise ConfigError(f"missing setting '{key}' (settings.json or {env_name})")
        return value

    def get_int(self, key: str, default: int) -> int:
        value = self.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"setting '{key}' must be an integer, got {value!r}")


def _merge(base: dict, override: Mapping) -> dict:
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def _read_json(path: Path) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except ValueError as e:
        raise ConfigError(f"invalid settings file {path}: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"settings file {path} must hold a JSON object")
    return data


def _env_overrides(environ: Mapping[str, str]) -> dict:
    overrides: dict = {}
    for name, value in environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        parts = [p.lower() for p in name[len(ENV_PREFIX):].split("__") if p]
        if not parts:
            continue
        node = overrides
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value
    return overrides


def load_user_config(
    settings_file: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    search_files=(APP_CONFIG_FILE, CONFIG_FILE)
) -> Settings:
    """
    Build settings from defaults, the user/app settings.json files,
    an explicit --settings file (which must exist) and PHOTOFOLIO_* variables.
    """
    data = copy.deepcopy(DEFAULTS)

    for path in search_files:
        if Path(path).exists():
            logger.debug("using settings file {}", path)
            _merge(data, _read_json(Path(path)))

    if settings_file:
        path = Path(settings_file)
        if not path.exists():
            raise ConfigError(f"settings file not found: {path}")
        logger.debug("using settings file {}", path)
        _merge(data, _read_json(path))

    _merge(data, _env_overrides(os.environ if environ is None else environ))
    return Settings(data)
