"""
YAML → dict config loader.

Loads the bundled data files (src/liftplan/data/*.yaml) and optionally
merges user overrides of the same name from ~/.liftplan/.

Usage:
    from liftplan.core.engine.config_loader import load_data_config
    model = load_data_config("time_cost_model.yaml", defaults=DEFAULT_TIME_COST_MODEL)

If a bundled file cannot be parsed, the Python defaults are used.  If the
user override file exists but has parse errors, a warning is logged and the
file is ignored.
"""

from __future__ import annotations

import importlib.resources
import logging
import os
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

USER_CONFIG_DIRNAME = ".liftplan"

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML mapping; return {} (and log) on any error."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", path, e)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config file %s: top level is not a mapping", path)
        return {}
    return data


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (non-destructive to base)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_bundled_data_path(filename: str) -> Path | None:
    """Return the path to a bundled data file, or None if not found."""
    ref = importlib.resources.files("liftplan").joinpath("data", filename)
    if ref.is_file():
        return Path(str(ref))
    candidate = Path(__file__).parent.parent.parent / "data" / filename
    return candidate if candidate.exists() else None


def get_user_config_dir() -> Path:
    """Return ~/.liftplan (not necessarily existing)."""
    home = Path(os.environ.get("HOME", "~")).expanduser()
    return home / USER_CONFIG_DIRNAME


def get_user_data_path(filename: str) -> Path | None:
    """Return ~/.liftplan/<filename> if it exists, else None."""
    p = get_user_config_dir() / filename
    return p if p.exists() else None


def load_data_config(
    filename: str,
    defaults: dict[str, Any] | None = None,
    include_user: bool = True,
) -> dict[str, Any]:
    """
    Load and merge one configuration document.

    Load order (later overrides earlier):
    1. Python defaults passed by the caller
    2. Bundled src/liftplan/data/<filename>
    3. User override at ~/.liftplan/<filename>

    Args:
        filename: Data file name, e.g. "time_cost_model.yaml"
        defaults: Baseline mapping (typically from core/config.py)
        include_user: Set False to ignore the user override (tests)

    Returns:
        Merged dict.  Empty dict if no source provided anything.
    """
    config: dict[str, Any] = dict(defaults or {})

    bundled = get_bundled_data_path(filename)
    if bundled is not None:
        config = _deep_merge(config, _load_yaml_file(bundled))
    else:
        logger.debug("No bundled %s found; using Python defaults", filename)

    if include_user:
        user = get_user_data_path(filename)
        if user is not None:
            user_cfg = _load_yaml_file(user)
            if user_cfg:
                logger.info("Applying user overrides from %s", user)
                config = _deep_merge(config, user_cfg)

    return config
