"""Reading and writing the JSON configuration file kept in the user's home."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_FILE_NAME = ".gatorconfig.json"


@dataclass
class Config:
    """Connection URL of the database and the name of the logged-in user."""

    db_url: str = ""
    current_user_name: str = ""
    path: Path | None = field(default=None, compare=False, repr=False)

    def set_user(self, user_name: str) -> None:
        """Make ``user_name`` the current user and save the configuration."""
        self.current_user_name = user_name
        write_config(self, self.path)

    def to_dict(self) -> dict[str, str]:
        return {"db_url": self.db_url, "current_user_name": self.current_user_name}


def default_config_path() -> Path:
    """Return the location of the configuration file in the home directory."""
    return Path.home() / CONFIG_FILE_NAME


def read_config(path: str | Path | None = None) -> Config:
    """Load the configuration; a missing file raises FileNotFoundError."""
    target = Path(path) if path is not None else default_config_path()
    with target.open(encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError("configuration file must hold a JSON object")
    values: dict[str, str] = {}
    for key in ("db_url", "current_user_name"):
        value = data.get(key)
        if value is None:
            values[key] = ""
        elif isinstance(value, str):
            values[key] = value
        else:
            raise ValueError(f"configuration field {key!r} must be a string")
    return Config(path=target, **values)


def write_config(cfg: Config, path: str | Path | None = None) -> None:
    """Write the configuration as one line of JSON, replacing the file."""
    target = Path(path) if path is not None else default_config_path()
    with target.open("w", encoding="utf-8") as handle:
        handle.write(json.dumps(cfg.to_dict(), separators=(",", ":")))
        handle.write("\n")