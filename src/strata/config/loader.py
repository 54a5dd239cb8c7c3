"""YAML config loading with env var expansion."""

import logging
import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import StrataConfig

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "STRATA_CONFIG"
PROJECT_CONFIG_NAME = "strata.yaml"


def load_config(cli_path: str | None = None) -> StrataConfig:
    """Load config with resolution order:
    CLI > $STRATA_CONFIG > nearest strata.yaml up from cwd > user-global > defaults.

    An explicit path (CLI or env var) that does not exist is an error; the
    discovered locations are simply skipped when absent.
    """
    explicit = cli_path or os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        path = Path(explicit).expanduser()
        if not path.is_file():
            raise ValueError(f"Config file not found: {path}")
        config_paths = [path]
    else:
        config_paths = [
            find_project_config(Path.cwd()),
            Path.home() / ".strata" / "config.yaml",
        ]

    for path in config_paths:
        if path and path.is_file():
            config = _read_config(path)
            if config is not None:
                logger.debug("Loaded config from %s", path)
                return config

    return StrataConfig()


def find_project_config(start: Path) -> Path | None:
    """Nearest strata.yaml in *start* or one of its parents."""
    for directory in (start, *start.parents):
        candidate = directory / PROJECT_CONFIG_NAME
        if candidate.is_file():
            return candidate
    return None


def _read_config(path: Path) -> StrataConfig | None:
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid config in {path}: top level must be a mapping, got {type(raw).__name__}")

    try:
        return StrataConfig.model_validate(_expand_env_vars(raw))
    except ValidationError as e:
        raise ValueError(f"Invalid config in {path}: {e}") from e


def _expand_env_vars(obj: object) -> object:
    """Recursively expand ${VAR} references in strings."""
    if isinstance(obj, str):
        return re.sub(r"\$\{(\w+)\}", lambda m: os.environ.get(m.group(1), ""), obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


# Default YAML template for `strata config init`
DEFAULT_CONFIG_TEMPLATE = """\
# strata.yaml

# Snapshot traversal
snapshot:
  concurrency: 1               # vertices expanded at once per level (1 = sequential)
  ignore_patterns:
    - ".git"
    - "node_modules"
    - "__pycache__"
    - ".venv"
    - ".strata"

# Output
output:
  directory: ".strata"         # where `--save` without a path writes snapshots
  show_identity: true          # print "#<identity>" next to every vertex

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""
