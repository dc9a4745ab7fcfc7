"""
Reading agent-runtime.jsonc files.

A global file under the home directory is read first, then the first
project file found; the project values are deep-merged on top. ``AGENT_MODEL``
wins over both.
"""

import json
import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

from .defaults import (
    CONFIG_DIR_NAME,
    DEFAULT_MODEL,
    GLOBAL_CONFIG_FILENAME,
    PROJECT_CONFIG_FILENAMES,
)
from .main_config import Config

logger = logging.getLogger(__name__)

MODEL_ENV_VAR = "AGENT_MODEL"
WORKING_DIR_ENV_VAR = "WORKING_DIR"

# A string literal, a line comment or a block comment, whichever starts first
_JSONC_TOKEN_RE = re.compile(r'"(?:\\.|[^"\\])*"|//[^\n]*|/\*.*?\*/', re.DOTALL)


def strip_jsonc_comments(content: str) -> str:
    """Drop ``//`` and ``/* */`` comments, keeping string literals intact."""
    return _JSONC_TOKEN_RE.sub(lambda m: m.group(0) if m.group(0).startswith('"') else "", content)


def load_config_file(path: Path) -> dict[str, Any] | None:
    """
    Parse one config file.

    Args:
        path: A ``.json`` or ``.jsonc`` file

    Returns:
        The top-level object, or None when the file is missing, unreadable,
        malformed or not an object
    """
    if not path.is_file():
        return None

    try:
        raw = path.read_text()
        data = json.loads(strip_jsonc_comments(raw) if path.suffix == ".jsonc" else raw)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Skipping unreadable config %s: %s", path, e)
        return None

    if isinstance(data, dict):
        return data
    logger.warning("Skipping config %s: expected a JSON object, got %s", path, type(data).__name__)
    return None


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively overlay ``override`` on ``base``. Non-dict values replace."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        merged[key] = merge_configs(current, value) if isinstance(current, dict) and isinstance(value, dict) else value
    return merged


def project_config_paths(project_root: Path) -> list[Path]:
    """Candidate project files, in lookup order."""
    candidates = [project_root / name for name in PROJECT_CONFIG_FILENAMES]
    candidates.append(project_root / CONFIG_DIR_NAME / GLOBAL_CONFIG_FILENAME)
    return candidates


def load_config(project_root: Path | None = None, home: Path | None = None) -> Config:
    """
    Build the effective Config for a workspace.

    Args:
        project_root: Workspace root (defaults to the current directory)
        home: Home directory holding the global file (defaults to ``Path.home()``)

    Returns:
        Validated Config; the agent model falls back to DEFAULT_MODEL
    """
    project_root = project_root or Path.cwd()
    home = home or Path.home()

    data = load_config_file(home / CONFIG_DIR_NAME / GLOBAL_CONFIG_FILENAME) or {}

    for path in project_config_paths(project_root):
        project_data = load_config_file(path)
        if project_data:
            logger.debug("Using project config %s", path)
            data = merge_configs(data, project_data)
            break

    model_override = os.environ.get(MODEL_ENV_VAR)
    if model_override:
        data = merge_configs(data, {"agent": {"model": model_override}})

    config = Config(**data)
    if config.agent.model:
        return config
    return config.model_copy(update={"agent": config.agent.with_model(DEFAULT_MODEL)})


def get_working_directory() -> str:
    """``WORKING_DIR`` if set, else the process working directory."""
    return os.environ.get(WORKING_DIR_ENV_VAR) or os.getcwd()


@lru_cache(maxsize=1)
def get_config(project_root: Path | None = None) -> Config:
    """Memoized ``load_config``; call ``get_config.cache_clear()`` to reload."""
    return load_config(project_root or Path.cwd())
