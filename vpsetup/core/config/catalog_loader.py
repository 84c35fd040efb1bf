"""
Catalog loader — reads the packaged module catalog (modules.yml).
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from vpsetup.core.errors import ConfigError
from vpsetup.core.models.module import ModuleCatalog

logger = logging.getLogger(__name__)

CATALOG_PATH = Path(__file__).resolve().parent.parent / "data" / "modules.yml"


def load_catalog(path: Path | None = None) -> ModuleCatalog:
    """Load and validate the module catalog.

    Args:
        path: Catalog file (default: the packaged ``modules.yml``).

    Returns:
        Validated ModuleCatalog.

    Raises:
        ConfigError: If the file is missing, not YAML, or fails validation.
    """
    path = path or CATALOG_PATH
    try:
        raw = path.read_text(encoding="utf-8")
        data = yaml.safe_load(raw)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot load module catalog {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Module catalog {path} must be a YAML mapping")

    try:
        catalog = ModuleCatalog.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid module catalog {path}: {e}") from e

    logger.debug("Loaded %d modules from %s", len(catalog.modules), path)
    return catalog
