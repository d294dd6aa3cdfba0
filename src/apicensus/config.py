"""Configuration loading with precedence resolution.

This module turns the on-disk configuration into the immutable
:class:`~apicensus.models.RunConfig` that every entry point receives:

* **Discovery** -- ``--config PATH`` or the first of ``apicensus.yaml``,
  ``apicensus.yml``, ``apicensus.json`` in the working directory. See
  :func:`find_config_file`.
* **Parsing** -- JSON or YAML with extension/content detection
  (:func:`load_config_file`), validated through Pydantic.
* **Precedence resolution** -- :func:`load_run_config` merges CLI flags,
  environment variables, the config file and defaults.
* **Data directory** -- XDG-compliant location for crash logs
  (:func:`get_data_dir`).

A missing config file is not an error: the defaults leave monitoring
disabled and the source root empty, and the pipeline degrades accordingly.
"""

from __future__ import annotations

import json
import os
import platform
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from apicensus.exceptions import ConfigurationError
from apicensus.models import RunConfig

_APP_NAME = "apicensus"
_CONFIG_FILENAMES = ("apicensus.yaml", "apicensus.yml", "apicensus.json")

ENV_COOKIE = "APICENSUS_COOKIE"
ENV_OUTPUT_DIR = "APICENSUS_OUTPUT_DIR"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/apicensus/`` (default ``~/.local/share/apicensus/``).
    On macOS/Windows: ``~/.apicensus/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_DATA_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".local" / "share"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Config file ---


def find_config_file(directory: Optional[Path] = None) -> Optional[Path]:
    """Return the first conventional config file in *directory* (default: cwd)."""
    base = directory or Path.cwd()
    for name in _CONFIG_FILENAMES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def load_config_file(path: Path) -> dict[str, Any]:
    """Read and parse a JSON or YAML config file.

    Args:
        path: File to read. ``.json`` is parsed strictly as JSON,
            ``.yaml``/``.yml`` as YAML; other extensions try JSON then YAML.

    Returns:
        The parsed mapping (empty for an empty file).

    Raises:
        ConfigurationError: If the file cannot be read or does not contain
            a mapping.
    """
    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}")
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc

    if not content.strip():
        return {}

    suffix = path.suffix.lower()
    try:
        if suffix == ".json":
            data = json.loads(content)
        elif suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content)
        else:
            try:
                data = json.loads(content)
            except json.JSONDecodeError:
                data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Invalid config file {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {path} must contain a mapping (got {type(data).__name__})"
        )
    return data


# --- Precedence resolution ---


def _section(data: dict[str, Any], key: str, source: Optional[Path]) -> dict[str, Any]:
    """Copy of the ``key`` mapping in *data* (empty when absent or null)."""
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(
            f"'{key}' in {source} must be a mapping (got {type(value).__name__})"
        )
    return dict(value)


def load_run_config(
    config_path: Optional[Path] = None,
    cli_output_dir: Optional[str] = None,
    cli_start_date: Optional[str] = None,
    cli_end_date: Optional[str] = None,
) -> RunConfig:
    """Resolve the effective run configuration.

    Precedence (high to low):
        1. CLI flags (``cli_output_dir``, ``cli_start_date``, ``cli_end_date``)
        2. Environment variables (``APICENSUS_COOKIE``, ``APICENSUS_OUTPUT_DIR``)
        3. Config file (``config_path`` or ``./apicensus.yaml``)
        4. Defaults

    Raises:
        ConfigurationError: If an explicitly named file is missing, or the
            file is unparsable or fails validation.
    """
    # 3. Config file
    source: Optional[Path] = config_path if config_path is not None else find_config_file()
    data: dict[str, Any] = load_config_file(source) if source is not None else {}

    monitoring = _section(data, "monitoring", source)
    repository = _section(data, "repository", source)
    output_dir = data.get("output_dir", "")

    # 2. Environment variables
    env_cookie = os.environ.get(ENV_COOKIE)
    if env_cookie:
        monitoring["cookie"] = env_cookie
    env_output = os.environ.get(ENV_OUTPUT_DIR)
    if env_output:
        output_dir = env_output

    # 1. CLI flags
    if cli_output_dir is not None:
        output_dir = cli_output_dir
    if cli_start_date is not None:
        monitoring["start_date"] = cli_start_date
    if cli_end_date is not None:
        monitoring["end_date"] = cli_end_date

    try:
        return RunConfig.model_validate(
            {
                "output_dir": str(output_dir or "").strip(),
                "monitoring": monitoring,
                "repository": repository,
                "source": str(source) if source is not None else None,
            }
        )
    except ValidationError as exc:
        where = source if source is not None else "defaults"
        raise ConfigurationError(f"Invalid configuration ({where}): {exc}") from exc


def describe_config(config: RunConfig) -> list[str]:
    """Return printable ``key : value`` lines with the cookie masked."""
    mon = config.monitoring
    repo = config.repository
    cookie = f"<{len(mon.cookie)} chars>" if mon.cookie else "MISSING!"
    return [
        f"  > CONFIG_FILE    : {config.source or '(none, defaults)'}",
        f"  > REPO_NAME      : {repo.name}",
        f"  > ROOT_PATH      : {repo.root_path or 'MISSING!'}",
        f"  > GIT_BIN        : {repo.git_bin}",
        f"  > OUTPUT_DIR     : {config.output_dir or 'MISSING!'}",
        f"  > MONITORING     : {mon.enabled}",
        f"  > URL            : {mon.url or 'MISSING!'}",
        f"  > COOKIE         : {cookie}",
        f"  > OKINDS_NAME    : {mon.okinds_name}",
        f"  > OKINDS         : {','.join(str(o) for o in mon.okinds)}",
        f"  > DATE RANGE     : {mon.start_date or '?'} ~ {mon.end_date or '?'}",
        f"  > FILTERS        : {mon.effective_filters}",
    ]
