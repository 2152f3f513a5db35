"""Reading and writing the user configuration file."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path

CONFIG_FILE_NAME = ".gatorconfig.json"


@dataclass
class Config:
    """Connection settings and the name of the logged-in user."""

    db_url: str = ""
    current_user_name: str = ""

    def set_user(self, user: str) -> None:
        """Make *user* the current user and save the configuration."""
        self.current_user_name = user
        _write(self)


def config_file_path() -> Path:
    """Return the location of the configuration file in the home directory."""
    return Path.home() / CONFIG_FILE_NAME


def _write(cfg: Config) -> None:
    payload = json.dumps(asdict(cfg), separators=(",", ":"))
    config_file_path().write_text(payload, encoding="utf-8")


def _string_field(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"config field {key!r} must be a string")
    return value


def read() -> Config:
    """Load the configuration file; unknown keys are ignored."""
    content = config_file_path().read_text(encoding="utf-8")
    data = json.loads(content)
    if not isinstance(data, dict):
        raise ValueError("config file must hold a JSON object")
    return Config(
        db_url=_string_field(data, "db_url"),
        current_user_name=_string_field(data, "current_user_name"),
    )