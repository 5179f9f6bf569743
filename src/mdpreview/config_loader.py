"""Load PreviewConfig from mdpreview.yaml / mdpreview.toml and the environment.

Precedence, lowest first: config file next to the markdown file, the
``WATCH_MODE`` environment variable, explicit keyword overrides (CLI).
Development mode comes only from ``WATCH_MODE`` or an override, never the
config file.
"""

from __future__ import annotations

import os
import shlex
from collections.abc import Mapping
from pathlib import Path

from mdpreview.config import PreviewConfig

# Environment variable selecting development mode; only "true" enables it
WATCH_MODE_ENV = "WATCH_MODE"

_CONFIG_KEYS = frozenset({
    "host", "port", "source_dir", "source_extensions",
    "rebuild_command", "rebuild_cwd", "debounce_ms", "open_browser",
    "title", "templates_dir", "vendor_dir", "highlight_style",
})
_PATH_KEYS = ("source_dir", "rebuild_cwd", "templates_dir", "vendor_dir")


def watch_mode_from_env(environ: Mapping[str, str] | None = None) -> bool:
    """Return True only when ``WATCH_MODE`` is the literal string ``"true"``."""
    env = os.environ if environ is None else environ
    return env.get(WATCH_MODE_ENV) == "true"


def load_config(
    file: Path,
    *,
    environ: Mapping[str, str] | None = None,
    **overrides: object,
) -> PreviewConfig:
    """Build a PreviewConfig for ``file``, merging file config, env and overrides.

    Looks for mdpreview.yaml, mdpreview.yml, or mdpreview.toml in the markdown
    file's directory. Relative paths in the config file are resolved against
    that directory.
    """
    file = file.resolve()
    file_config = _read_config_file(file.parent)
    merged: dict[str, object] = {**file_config}
    if watch_mode_from_env(environ):
        merged["watch"] = True
    merged.update({k: v for k, v in overrides.items() if v is not None})
    return PreviewConfig(file=file, **_normalize(merged, file.parent))


def _normalize(values: dict[str, object], base: Path) -> dict[str, object]:
    """Coerce loosely-typed config values into PreviewConfig field types."""
    result = dict(values)
    for key in _PATH_KEYS:
        if key in result and result[key] is not None:
            path = Path(str(result[key]))
            result[key] = path if path.is_absolute() else base / path
    exts = result.get("source_extensions")
    if isinstance(exts, str):
        result["source_extensions"] = tuple(e.strip() for e in exts.split(",") if e.strip())
    elif isinstance(exts, list):
        result["source_extensions"] = tuple(str(e) for e in exts)
    command = result.get("rebuild_command")
    if isinstance(command, str):
        result["rebuild_command"] = tuple(shlex.split(command))
    elif isinstance(command, list):
        result["rebuild_command"] = tuple(str(part) for part in command)
    return result


def _read_config_file(directory: Path) -> dict[str, object]:
    """Read config from yaml/toml if present. Returns empty dict otherwise."""
    for name in ("mdpreview.yaml", "mdpreview.yml"):
        path = directory / name
        if path.is_file():
            return _parse_yaml(path)
    toml_path = directory / "mdpreview.toml"
    if toml_path.is_file():
        return _parse_toml(toml_path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    """Parse YAML config. Returns empty dict on error."""
    import yaml

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError):
        return {}
    if not isinstance(data, dict):
        return {}
    return _flatten_section(data)


def _parse_toml(path: Path) -> dict[str, object]:
    """Parse TOML config. Returns empty dict on error."""
    import tomllib

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError):
        return {}
    return _flatten_section(data)


def _flatten_section(data: dict[str, object]) -> dict[str, object]:
    """Collect known keys from the top level and an ``mdpreview`` section."""
    result: dict[str, object] = {
        k: v for k, v in data.items() if k in _CONFIG_KEYS
    }
    section = data.get("mdpreview")
    if isinstance(section, dict):
        for k, v in section.items():
            if k in _CONFIG_KEYS:
                result[k] = v
    return result
