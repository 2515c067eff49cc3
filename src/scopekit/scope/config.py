"""Engine configuration loaded from ``.scopekit/config.yaml``.

Example::

    resolution:
      strict: false
      default_failure_mode: skip
      allow_interactive: false
    catalog:
      collision_policy: first_wins
      family_order: [standard, provider, named, module]

Missing files and missing keys fall back to defaults. Malformed files
fall back to defaults as a whole and log a warning.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import ruamel.yaml
from ruamel.yaml.error import YAMLError
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .catalog import DEFAULT_FAMILY_ORDER, CatalogFamily, CollisionPolicy
from .models import FailureMode
from .strictness import ResolutionPolicy

logger = logging.getLogger(__name__)

CONFIG_DIR = ".scopekit"
CONFIG_FILE = "config.yaml"


class EngineConfig(BaseModel):
    """Defaults applied when a request or caller leaves a policy unset."""

    model_config = ConfigDict(frozen=True)

    strict: bool = True
    default_failure_mode: FailureMode = FailureMode.EMPTY_SCOPE
    allow_interactive: bool = False
    collision_policy: CollisionPolicy = CollisionPolicy.FIRST_WINS
    family_order: tuple[CatalogFamily, ...] = Field(default=DEFAULT_FAMILY_ORDER)

    @field_validator("family_order")
    @classmethod
    def validate_family_order(cls, v: tuple[CatalogFamily, ...]) -> tuple[CatalogFamily, ...]:
        """Each family at most once."""
        if len(set(v)) != len(v):
            raise ValueError(f"family_order lists a family more than once: {[f.value for f in v]}")
        return v

    @property
    def policy(self) -> ResolutionPolicy:
        return ResolutionPolicy.from_strict(self.strict)


def config_path(repo_root: Path) -> Path:
    return repo_root / CONFIG_DIR / CONFIG_FILE


def _flatten(raw: dict[str, Any]) -> dict[str, Any]:
    resolution = raw.get("resolution") or {}
    catalog = raw.get("catalog") or {}
    if not isinstance(resolution, dict) or not isinstance(catalog, dict):
        raise ValueError("'resolution' and 'catalog' must be mappings")
    flat: dict[str, Any] = {}
    for key in ("strict", "default_failure_mode", "allow_interactive"):
        if key in resolution:
            flat[key] = resolution[key]
    for key in ("collision_policy", "family_order"):
        if key in catalog:
            flat[key] = catalog[key]
    return flat


def load_engine_config(repo_root: Path) -> EngineConfig:
    """Load engine configuration for ``repo_root``.

    Args:
        repo_root: Directory containing ``.scopekit/config.yaml``

    Returns:
        Parsed configuration, or defaults when the file is missing or invalid

    Examples:
        >>> from pathlib import Path
        >>> load_engine_config(Path("/nonexistent")).strict
        True
    """
    path = config_path(repo_root)
    if not path.exists():
        return EngineConfig()

    yaml = ruamel.yaml.YAML(typ="safe")
    try:
        with path.open() as f:
            raw = yaml.load(f)
        if raw is None:
            return EngineConfig()
        if not isinstance(raw, dict):
            raise ValueError("top level must be a mapping")
        return EngineConfig.model_validate(_flatten(raw))
    except (YAMLError, ValidationError, ValueError, OSError) as exc:
        logger.warning("Ignoring invalid scope config %s: %s", path, exc)
        return EngineConfig()
