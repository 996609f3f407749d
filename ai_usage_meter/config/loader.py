"""
Configuration management and loading.

Handles the meter's YAML settings, model presets and API keys from
environment variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml

from ai_usage_meter.sdk.client import DEFAULT_DECK_CATEGORIES, SUPPORTED_MODELS, ModelConfig
from ai_usage_meter.storage.db import DEFAULT_DB_PATH
from ai_usage_meter.storage.ledger import MAX_RECORDS

# Environment variables checked in order for each provider
API_KEY_ENV_VARS: Dict[str, Tuple[str, ...]] = {
    "gemini": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    "openai": ("OPENAI_API_KEY",),
    "anthropic": ("ANTHROPIC_API_KEY",),
    "deepseek": ("DEEPSEEK_API_KEY",),
}

PRESETS: Dict[str, Tuple[str, str]] = {
    "default": ("gemini", "gemini-2.0-flash"),
    "high-accuracy": ("openai", "gpt-4.1"),
    "budget": ("openai", "gpt-4.1-mini"),
    "fast": ("anthropic", "claude-3-haiku-20240307"),
    "claude-latest": ("anthropic", "claude-sonnet-4-20250514"),
    "max-accuracy": ("openai", "o3"),
}


@dataclass(frozen=True)
class LedgerConfig:
    """Where usage records live and how many are kept."""
    db_path: str = DEFAULT_DB_PATH
    max_records: int = MAX_RECORDS

    def __post_init__(self):
        """Validate ledger values."""
        if not self.db_path:
            raise ValueError("ledger db_path cannot be empty")
        if self.max_records <= 0:
            raise ValueError("ledger max_records must be > 0")


@dataclass(frozen=True)
class MeterConfig:
    """Complete meter configuration."""
    provider: str
    model: str
    api_key_env: Optional[str] = None
    track_usage: bool = True
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    categories: Tuple[str, ...] = DEFAULT_DECK_CATEGORIES

    def __post_init__(self):
        """Validate provider and model."""
        if self.provider not in SUPPORTED_MODELS:
            raise ValueError(
                f"provider must be one of: {sorted(SUPPORTED_MODELS)}"
            )
        if not self.model or not self.model.strip():
            raise ValueError("model is required and cannot be empty")
        if not self.categories:
            raise ValueError("anki categories cannot be empty")

    def resolve_api_key(self, environ: Optional[Mapping[str, str]] = None) -> str:
        """Read the provider's API key from the environment.

        Raises:
            ValueError: If no key is set
        """
        environ = os.environ if environ is None else environ
        names = (self.api_key_env,) if self.api_key_env else API_KEY_ENV_VARS[self.provider]
        for name in names:
            value = environ.get(name, "").strip()
            if value:
                return value
        raise ValueError(
            f"{self.provider} API key not found. Set it via:\n"
            f"  export {names[0]}=..."
        )

    def to_model_config(self, environ: Optional[Mapping[str, str]] = None) -> ModelConfig:
        """Bind this configuration to a credential."""
        return ModelConfig(
            provider=self.provider,
            model=self.model,
            api_key=self.resolve_api_key(environ),
            track_usage=self.track_usage,
        )


def preset_config(name: str) -> MeterConfig:
    """Build the configuration for a named preset.

    Raises:
        ValueError: If the preset is unknown
    """
    if name not in PRESETS:
        raise ValueError(f"Unknown preset '{name}'. Choose from: {sorted(PRESETS)}")
    provider, model = PRESETS[name]
    return MeterConfig(provider=provider, model=model)


def load_meter_config(path: str) -> MeterConfig:
    """Load and validate meter configuration from YAML file.

    Strict validation ensures no silent misconfigurations, such as
    metering calls against the wrong provider.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated MeterConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    # Load YAML content
    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    # Validate top-level structure
    allowed_top_keys = {'provider', 'model', 'api_key_env', 'track_usage', 'ledger', 'anki'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    for key in ('provider', 'model'):
        if key not in raw_config:
            raise ValueError(f"Missing required '{key}'")
        if not isinstance(raw_config[key], str):
            raise ValueError(f"'{key}' must be a string")

    api_key_env = raw_config.get('api_key_env')
    if api_key_env is not None and (not isinstance(api_key_env, str) or not api_key_env):
        raise ValueError("'api_key_env' must be a non-empty string")

    track_usage = raw_config.get('track_usage', True)
    if not isinstance(track_usage, bool):
        raise ValueError("'track_usage' must be true or false")

    return MeterConfig(
        provider=raw_config['provider'].lower(),
        model=raw_config['model'],
        api_key_env=api_key_env,
        track_usage=track_usage,
        ledger=_parse_ledger_config(raw_config.get('ledger', {})),
        categories=_parse_categories(raw_config.get('anki', {})),
    )


def _parse_ledger_config(data) -> LedgerConfig:
    """Parse and validate the ledger section.

    Raises:
        ValueError: If configuration is invalid
    """
    if not isinstance(data, dict):
        raise ValueError("'ledger' must be a dictionary")

    allowed_keys = {'db_path', 'max_records'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in ledger: {unknown_keys}")

    db_path = data.get('db_path', DEFAULT_DB_PATH)
    if not isinstance(db_path, str):
        raise ValueError("'db_path' in ledger must be a string")

    max_records = data.get('max_records', MAX_RECORDS)
    # bool is an int subclass
    if isinstance(max_records, bool) or not isinstance(max_records, int):
        raise ValueError("'max_records' in ledger must be an integer")

    return LedgerConfig(db_path=db_path, max_records=max_records)


def _parse_categories(data) -> Tuple[str, ...]:
    """Parse and validate the anki section.

    Raises:
        ValueError: If configuration is invalid
    """
    if not isinstance(data, dict):
        raise ValueError("'anki' must be a dictionary")

    unknown_keys = set(data.keys()) - {'categories'}
    if unknown_keys:
        raise ValueError(f"Unknown keys in anki: {unknown_keys}")

    categories = data.get('categories', list(DEFAULT_DECK_CATEGORIES))
    if not isinstance(categories, list) or not all(isinstance(c, str) and c for c in categories):
        raise ValueError("'categories' in anki must be a list of non-empty strings")

    return tuple(categories)
