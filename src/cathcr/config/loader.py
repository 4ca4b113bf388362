"""YAML configuration loader with inheritance support.

Supports:
- Profile files that ``extends`` a base file
- Deep merging of nested sections
- ``CATHCR__<SECTION>__<KEY>`` environment overrides
- Profile selection from the CATHCR_PROFILE environment variable
"""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from . import (
    AudioConfig,
    CategorizerConfig,
    CathcrConfig,
    LoggingConfig,
    PipelineConfig,
    StorageConfig,
    TestingConfig,
    TranscriptionConfig,
)

PROFILES = ("dev", "prod", "test")
ENV_PREFIX = "CATHCR__"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``.

    Sections present in both are merged key by key; any other value in
    ``override`` replaces the base value.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def load_yaml_with_inheritance(path: Path, _chain: tuple[Path, ...] = ()) -> dict[str, Any]:
    """Load a YAML file, resolving its ``extends`` chain.

    Raises:
        FileNotFoundError: If the file or a file it extends is missing
        ValueError: If the ``extends`` chain loops
    """
    path = path.resolve()
    if path in _chain:
        raise ValueError(f"Config inheritance loop at {path.name}")
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    parent = data.pop("extends", None)
    if parent is None:
        return data
    base = load_yaml_with_inheritance(path.parent / parent, _chain + (path,))
    return deep_merge(base, data)


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Collect ``CATHCR__SECTION__KEY=value`` variables as a config tree.

    Values are parsed as YAML scalars, so ``true`` and ``2.5`` keep
    their types.
    """
    environ = os.environ if environ is None else environ
    section_values: dict[str, Any] = {}
    for name, raw in environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        parts = name[len(ENV_PREFIX) :].lower().split("__")
        if len(parts) != 2 or not all(parts):
            continue
        section, key = parts
        section_values.setdefault(section, {})[key] = yaml.safe_load(raw) if raw else raw
    return {"cathcr": section_values} if section_values else {}


def dict_to_config(data: dict[str, Any]) -> CathcrConfig:
    """Build the typed config from the merged ``cathcr`` tree.

    Raises:
        TypeError: If a section holds a key the dataclass does not have
    """
    root = data.get("cathcr") or {}

    def section(name: str) -> dict[str, Any]:
        # An empty YAML section loads as None
        return root.get(name) or {}

    return CathcrConfig(
        audio=AudioConfig(**section("audio")),
        transcription=TranscriptionConfig(**section("transcription")),
        categorizer=CategorizerConfig(**section("categorizer")),
        storage=StorageConfig(**section("storage")),
        pipeline=PipelineConfig(**section("pipeline")),
        logging=LoggingConfig(**section("logging")),
        testing=TestingConfig(**section("testing")),
    )


def detect_profile() -> str:
    """Return the profile named by CATHCR_PROFILE, defaulting to dev."""
    env_profile = os.environ.get("CATHCR_PROFILE", "").strip().lower()
    return env_profile if env_profile in PROFILES else "dev"


class YAMLConfigLoader:
    """Loads profiles from a config directory and applies env overrides."""

    def __init__(self, config_dir: Path | None = None, use_env: bool = True) -> None:
        """Initialize loader.

        Args:
            config_dir: Directory holding ``<profile>.yaml`` files, by
                default ``config/`` at the project root
            use_env: Apply ``CATHCR__SECTION__KEY`` overrides
        """
        self._config_dir = config_dir or Path(__file__).resolve().parents[3] / "config"
        self._use_env = use_env

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    def load(self, path: Path) -> CathcrConfig:
        """Load a config file and its parents."""
        data = load_yaml_with_inheritance(path)
        if self._use_env:
            data = deep_merge(data, env_overrides())
        return dict_to_config(data)

    def load_profile(self, profile: str) -> CathcrConfig:
        """Load ``<profile>.yaml`` from the config directory.

        Raises:
            ValueError: If the profile is unknown
        """
        if profile not in PROFILES:
            raise ValueError(f"Unknown profile {profile!r}, expected one of {', '.join(PROFILES)}")
        return self.load(self._config_dir / f"{profile}.yaml")


def load_config(path: str | Path | None = None, profile: str | None = None) -> CathcrConfig:
    """Load Cathcr configuration.

    Args:
        path: Direct path to config file (takes precedence)
        profile: Profile name ('dev', 'prod', 'test') if path not given;
            CATHCR_PROFILE picks it otherwise

    Returns:
        Parsed CathcrConfig

    Examples:
        >>> config = load_config(profile="dev")
        >>> config = load_config(path="/path/to/config.yaml")
    """
    loader = YAMLConfigLoader()
    if path is not None:
        return loader.load(Path(path))
    return loader.load_profile(profile or detect_profile())


__all__ = [
    "ENV_PREFIX",
    "PROFILES",
    "YAMLConfigLoader",
    "deep_merge",
    "detect_profile",
    "dict_to_config",
    "env_overrides",
    "load_config",
    "load_yaml_with_inheritance",
]
