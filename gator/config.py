"""Reading and writing the user's JSON configuration file."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

CONFIG_FILE_NAME = ".gatorconfig.json"

PathLike = Union[str, Path]


@dataclass
class Config:
    """Database location and the name of the logged-in user."""

    db_url: str = ""
    current_user_name: str = ""
    path: Optional[Path] = field(default=None, compare=False, repr=False)

    def set_user(self, user_name: str) -> None:
        """Record ``user_name`` as the current user and save the file."""
        self.current_user_name = user_name
        write(self)

    def to_dict(self) -> dict:
        return {"db_url": self.db_url, "current_user_name": self.current_user_name}


def config_file_path() -> Path:
    """Return the location of the configuration file in the home directory."""
    return Path.home() / CONFIG_FILE_NAME


def _string_field(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"config field {key!r} must be a string")
    return value


def read(path: Optional[PathLike] = None) -> Config:
    """Load the configuration from ``path`` or the default location."""
    target = Path(path) if path is not None else config_file_path()
    with target.open("r", encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError("config file must hold a JSON object")
    return Config(
        db_url=_string_field(data, "db_url"),
        current_user_name=_string_field(data, "current_user_name"),
        path=target,
    )


def write(cfg: Config, path: Optional[PathLike] = None) -> None:
    """Save ``cfg`` to ``path``, the file it was read from, or the default location."""
    if path is not None:
        target = Path(path)
    elif cfg.path is not None:
        target = cfg.path
    else:
        target = config_file_path()
    with target.open("w", encoding="utf-8") as fh:
        fh.write(json.dumps(cfg.to_dict(), separators=(",", ":")))
        fh.write("\n")