"""
Configuration for gistenv.

Settings come from the process environment and from a .gistenv file
(project directory first, then the home directory). Environment variables
win over the file. Each setting has a namespaced name and a short fallback:

    GISTENV_GIST_ID         / GIST_ID
    GISTENV_GITHUB_TOKEN    / GITHUB_TOKEN
    GISTENV_ENCRYPTION_KEY  / ENCRYPTION_KEY
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Tuple

from .crypto import is_available
from .lexer import parse_variables, to_mapping


CONFIG_FILENAME = ".gistenv"

GIST_ID_VARS = ("GISTENV_GIST_ID", "GIST_ID")
GITHUB_TOKEN_VARS = ("GISTENV_GITHUB_TOKEN", "GITHUB_TOKEN")
ENCRYPTION_KEY_VARS = ("GISTENV_ENCRYPTION_KEY", "ENCRYPTION_KEY")


class ConfigError(Exception):
    """Raised when a required setting is missing."""


@dataclass
class Config:
    """Resolved settings for one run."""
    gist_id: Optional[str] = None
    github_token: Optional[str] = None
    encryption_key: Optional[str] = None

    @property
    def encryption_available(self) -> bool:
        return is_available(self.encryption_key)

    def require_gist_id(self) -> str:
        if not self.gist_id:
            raise ConfigError(
                "Gist ID not set. Please set GISTENV_GIST_ID or GIST_ID "
                "in your .gistenv or environment."
            )
        return self.gist_id


def find_config_file(project_root: str = ".", home: Optional[Path] = None) -> Optional[Path]:
    """
    Locate the .gistenv file.

    Args:
        project_root: Directory searched first
        home: Home directory searched second (defaults to Path.home())

    Returns:
        Path to the file, or None if neither location has one
    """
    candidates = [Path(project_root) / CONFIG_FILENAME]
    candidates.append((home if home is not None else Path.home()) / CONFIG_FILENAME)

    for path in candidates:
        if path.is_file():
            return path
    return None


def _lookup(names: Tuple[str, ...], *sources: Mapping[str, str]) -> Optional[str]:
    for source in sources:
        for name in names:
            value = source.get(name)
            if value:
                return value
    return None


def load_config(
    project_root: str = ".",
    environ: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Config:
    """
    Build a Config from the environment and the .gistenv file.

    Args:
        project_root: Directory to look for .gistenv in
        environ: Environment mapping (defaults to os.environ)
        home: Home directory override

    Returns:
        Config with every setting that could be found
    """
    if environ is None:
        environ = os.environ

    file_values: Mapping[str, str] = {}
    config_path = find_config_file(project_root, home)
    if config_path is not None:
        file_values = to_mapping(parse_variables(config_path.read_text()))

    return Config(
        gist_id=_lookup(GIST_ID_VARS, environ, file_values),
        github_token=_lookup(GITHUB_TOKEN_VARS, environ, file_values),
        encryption_key=_lookup(ENCRYPTION_KEY_VARS, environ, file_values),
    )
