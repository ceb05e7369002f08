"""API key loading for modelstream.

Keys are read with this priority:
  1. Environment variables (highest, already set in the shell)
  2. ~/.modelstream/keys.env
  3. .env in current directory (project-level)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

# Directory for user-level modelstream configuration
MODELSTREAM_HOME = Path.home() / ".modelstream"
KEYS_FILE = MODELSTREAM_HOME / "keys.env"


def read_env_file(path: Path) -> dict[str, str]:
    """Parse ``KEY=VALUE`` lines, skipping blanks, comments and junk.

    Surrounding quotes are stripped from values. An unreadable file yields
    an empty mapping.
    """
    entries: dict[str, str] = {}
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Could not read %s", path)
        return entries

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        name, _, value = line.partition("=")
        name = name.strip()
        if name:
            entries[name] = value.strip().strip("'\"")
    return entries


def load_keys_env(files: list[Path] | None = None) -> list[str]:
    """Copy keys from env files into ``os.environ``.

    Variables that already hold a value are left alone, so the shell wins
    over every file and earlier files win over later ones.

    Args:
        files: Files to read. Defaults to ~/.modelstream/keys.env then ./.env.

    Returns:
        Names of the variables that were set.
    """
    if files is None:
        files = [KEYS_FILE, Path.cwd() / ".env"]

    loaded: list[str] = []
    for env_file in files:
        if not env_file.is_file():
            continue
        for name, value in read_env_file(env_file).items():
            if os.environ.get(name):
                continue
            os.environ[name] = value
            loaded.append(name)
            logger.debug("Loaded %s from %s", name, env_file)
    return loaded


def has_key(env_var: str) -> bool:
    """Check whether ``env_var`` holds a non-empty value."""
    return bool(os.environ.get(env_var))
