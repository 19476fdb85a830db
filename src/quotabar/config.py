import json
import os
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from quotabar.errors import ConfigurationError

logger = structlog.get_logger()


def default_config_path() -> "Path":
    return Path.home() / ".minimax-config.json"


# credentials file key -> Config attribute
_FILE_KEYS: "dict[str, str]" = {
    "token": "token",
    "groupId": "group_id",
    "overseasToken": "overseas_token",
    "overseasGroupId": "overseas_group_id",
}

# environment variable -> Config attribute
_ENV_KEYS: "dict[str, str]" = {
    "MINIMAX_TOKEN": "token",
    "MINIMAX_GROUP_ID": "group_id",
    "MINIMAX_OVERSEAS_TOKEN": "overseas_token",
    "MINIMAX_OVERSEAS_GROUP_ID": "overseas_group_id",
}


@dataclass
class Config:
    token: "str" = ""
    group_id: "str" = ""
    # secondary account on the overseas site
    overseas_token: "str" = ""
    overseas_group_id: "str" = ""
    # refresh interval in seconds for watch mode
    refresh_interval: "int" = 30
    log_level: "str" = "info"
    config_path: "Path" = field(default_factory=default_config_path)

    @classmethod
    def from_file(cls, path: "Path | None" = None) -> "Config":
        """
        loads credentials from the JSON credentials file. A missing
        or unreadable file yields empty credentials.
        """
        path = path or default_config_path()
        config = cls(config_path=path)
        if not path.exists():
            return config

        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("config_load_failed", path=str(path), error=str(e))
            return config

        if not isinstance(raw, dict):
            logger.warning("config_load_failed", path=str(path), error="not an object")
            return config

        for key, attr in _FILE_KEYS.items():
            value = raw.get(key)
            if value:
                setattr(config, attr, str(value))
        return config

    @classmethod
    def from_env(cls, path: "Path | None" = None) -> "Config":
        """
        loads the credentials file, then lets environment variables
        override individual fields.
        """
        config = cls.from_file(path)
        for var, attr in _ENV_KEYS.items():
            value = os.environ.get(var, "")
            if value:
                setattr(config, attr, value)
        return config

    def save(self) -> "None":
        data = {
            key: getattr(self, attr)
            for key, attr in _FILE_KEYS.items()
            if getattr(self, attr)
        }
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def require_credentials(self) -> "None":
        if not self.token or not self.group_id:
            raise ConfigurationError(
                'Missing credentials. Please run "quotabar auth <token> <groupId>" first'
            )

    @property
    def overseas_enabled(self) -> "bool":
        return bool(self.overseas_token and self.overseas_group_id)
