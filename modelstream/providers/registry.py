"""Model registry backed by a TOML file.

Each ``[models.<key>]`` table becomes a ``ModelConfig``. The CLI resolves
``--model`` keys through here; library users can also build
``LiteLLMTextStreamingModel`` instances straight from a registry entry.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

from pydantic import ValidationError

from modelstream.schemas.registry import ModelConfig

# Registry shipped inside the package
_CONFIG_DIR = Path(__file__).parent.parent / "config"


def default_models_path() -> Path:
    return _CONFIG_DIR / "models.toml"


def load_models(config_path: Path | None = None) -> dict[str, ModelConfig]:
    """Read the model registry.

    Args:
        config_path: Path to a models.toml. Defaults to the packaged one.

    Returns:
        Registry keys mapped to their ModelConfig, in file order.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If there is no [models] table, or an entry is invalid.
    """
    path = config_path or default_models_path()
    if not path.exists():
        raise FileNotFoundError(f"Model registry not found: {path}")

    with open(path, "rb") as f:
        raw = tomllib.load(f)

    models_section = raw.get("models")
    if not models_section or not isinstance(models_section, dict):
        raise ValueError(f"No [models] section found in {path}")

    registry: dict[str, ModelConfig] = {}
    for key, entry in models_section.items():
        if not isinstance(entry, dict):
            continue
        try:
            registry[key] = ModelConfig.model_validate(entry)
        except ValidationError as e:
            raise ValueError(f"Invalid model entry '{key}' in {path}: {e}") from e

    return registry


def get_model_config(registry: dict[str, ModelConfig], key: str) -> ModelConfig:
    """Look up a registry entry, listing the known keys when it is missing.

    Raises:
        KeyError: If ``key`` is not registered.
    """
    try:
        return registry[key]
    except KeyError:
        available = ", ".join(sorted(registry)) or "none"
        raise KeyError(f"Unknown model '{key}' (available: {available})") from None
