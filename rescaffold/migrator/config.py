"""Configuration loading for migration and reconcile runs.

Resolution order for each setting:
1. Environment override (RESCAFFOLD_SNAPSHOT_SUFFIX, RESCAFFOLD_GENERATOR)
2. YAML config file (--config, RESCAFFOLD_CONFIG, or ./rescaffold.yaml)
3. Built-in default

Config file example:

    new_version: v4
    snapshot_suffix: .snapshot
    protected_files: [OWNERS, Makefile]
    extra_dirs: [templates, hack]
"""

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional, Tuple

import yaml

from migrator.errors import ConfigError

DEFAULT_CONFIG_NAME = "rescaffold.yaml"


@dataclass(frozen=True)
class MigrationSettings:
    """Tunable knobs for both runs. Immutable once loaded."""

    new_version: str = "v4"
    plugin: str = "go/v4"
    snapshot_suffix: str = ".snapshot"
    generator: str = "operator-sdk"
    go_binary: str = "go"
    command_timeout: int = 900

    # Path-reference rewriting
    rewrite_suffixes: Tuple[str, ...] = (".go",)
    generated_marker: str = "zz_generated"

    # Package names on each side of the controller move
    old_controller_package: str = "controllers"
    new_controller_package: str = "controller"

    # Tree reconciler
    operator_suffix: str = "-operator"
    protected_files: Tuple[str, ...] = (
        "OWNERS", "OWNERS_ALIASES", "LICENSE.txt",
        "kuttl-test.json", "renovate.json", "Makefile",
    )
    protected_dirs: Tuple[str, ...] = (
        "zuul.d", ".github", "config/samples", "test", "internal",
    )
    lint_config: str = ".golangci.yml"

    # Relocation extras
    extra_files: Tuple[str, ...] = (
        ".gitignore", "README.md", "LICENSE", "Dockerfile", ".dockerignore",
    )
    extra_dirs: Tuple[str, ...] = (
        "templates", "scripts", "hack", "config/manifests/bases",
    )
    cleanup_paths: Tuple[str, ...] = (
        ".github/workflows", ".golangci.yml", ".devcontainer",
    )
    api_module_requires: Tuple[str, ...] = (
        "k8s.io/apimachinery v0.31.0",
        "sigs.k8s.io/controller-runtime v0.19.0",
    )


_TUPLE_FIELDS = {
    "rewrite_suffixes", "protected_files", "protected_dirs",
    "extra_files", "extra_dirs", "cleanup_paths", "api_module_requires",
}

_ENV_OVERRIDES = {
    "RESCAFFOLD_SNAPSHOT_SUFFIX": "snapshot_suffix",
    "RESCAFFOLD_GENERATOR": "generator",
}


def _resolve_config_path(path: Optional[str]) -> Optional[Path]:
    """Pick the config file to read, or None when there is nothing to read.

    An explicitly requested file that does not exist is a ConfigError.
    """
    explicit = path or os.environ.get("RESCAFFOLD_CONFIG", "")
    if explicit:
        candidate = Path(explicit)
        if not candidate.is_file():
            raise ConfigError(f"Config file not found: {candidate}")
        return candidate
    default = Path.cwd() / DEFAULT_CONFIG_NAME
    return default if default.is_file() else None


def _coerce(name: str, value):
    if name in _TUPLE_FIELDS:
        if isinstance(value, str):
            return (value,)
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"'{name}' must be a list of strings")
        return tuple(value)
    if name == "command_timeout":
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigError("'command_timeout' must be a positive integer")
        return value
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{name}' must be a non-empty string")
    return value.strip()


def load_config(path: Optional[str] = None) -> MigrationSettings:
    """Load settings from YAML (if any) on top of the built-in defaults.

    Raises ConfigError on invalid YAML, unknown keys, or wrong value types.
    """
    settings = MigrationSettings()
    overrides = {}

    config_path = _resolve_config_path(path)
    if config_path is not None:
        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}")
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"{config_path} must be a YAML mapping")

        known = {f.name for f in fields(MigrationSettings)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys in {config_path}: {', '.join(unknown)}")
        for key, value in data.items():
            overrides[key] = _coerce(key, value)

    for env_name, key in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name, "").strip()
        if value:
            overrides[key] = value

    return replace(settings, **overrides) if overrides else settings


def converted_dir_for(project_dir: Path, settings: MigrationSettings) -> Path:
    """``keystone-operator`` -> ``keystone-operator-v4`` (sibling directory)."""
    project_dir = Path(project_dir)
    return project_dir.with_name(f"{project_dir.name}-{settings.new_version}")
