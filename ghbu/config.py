"""
Run configuration

Copyright 2025 HyperSec

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

import os
from argparse import Namespace
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .base import AccountKind
from .errors import ConfigError
from .token_discovery import get_github_token

DEFAULT_PARALLEL = 2
CLONE_PROTOCOLS = ("ssh", "https")


@dataclass(frozen=True)
class BackupConfig:
    backup_dir: Path
    token: str = field(repr=False)
    org_name: Optional[str] = None
    user_name: Optional[str] = None
    replace: bool = False
    parallel: int = DEFAULT_PARALLEL
    prefer_ssh: bool = True
    show_progress: bool = True

    @property
    def account_kind(self) -> AccountKind:
        # Organization takes precedence over user
        if self.org_name:
            return AccountKind.ORGANIZATION
        return AccountKind.USER

    @property
    def account_name(self) -> Optional[str]:
        if self.org_name:
            return self.org_name
        return self.user_name or None


def get_env_default(env_var: str, fallback=None, environ: Optional[Mapping[str, str]] = None):
    """Get value from environment or .env file"""
    env = os.environ if environ is None else environ
    return env.get(env_var, fallback)


def parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1", "on"):
            return True
        if lowered in ("false", "no", "0", "off", ""):
            return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def parse_parallel(value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigError("parallel must be a positive integer")
    try:
        parallel = int(value)
    except (TypeError, ValueError):
        raise ConfigError("parallel must be a positive integer") from None
    if parallel < 1:
        raise ConfigError("parallel must be a positive integer")
    return parallel


def load_config_file(path: Optional[str]) -> Dict[str, Any]:
    """Read a YAML configuration file, returning an empty dict when no path is given"""
    if not path:
        return {}
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"config file not found: {path}") from None
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return data


def _first(*values):
    for value in values:
        if value is not None and value != "":
            return value
    return None


def load_config(
    args: Optional[Namespace] = None,
    environ: Optional[Mapping[str, str]] = None,
    use_gh_cli: bool = True,
) -> BackupConfig:
    """
    Build the run configuration.

    Sources, highest priority first: command-line flags, environment
    variables, the YAML config file, built-in defaults.

    Raises:
        ConfigError: when required values are missing or invalid
    """
    args = args or Namespace()
    env = os.environ if environ is None else environ

    config_path = _first(
        getattr(args, "config", None), get_env_default("GHBU_CONFIG", environ=env)
    )
    file_config = load_config_file(config_path)

    org_name = _first(
        getattr(args, "org", None),
        get_env_default("GITHUB_ORG", environ=env),
        file_config.get("org"),
    )
    user_name = _first(
        getattr(args, "user", None),
        get_env_default("GITHUB_USER", environ=env),
        file_config.get("user"),
    )
    backup_dir = _first(
        getattr(args, "dir", None),
        get_env_default("BACKUP_DIR", environ=env),
        file_config.get("dir"),
    )
    token = (
        getattr(args, "token", None)
        or get_github_token(env, use_gh_cli=use_gh_cli)
        or file_config.get("token")
    )

    if not backup_dir or not token:
        raise ConfigError("directory and token are required")

    path = Path(os.path.expanduser(str(backup_dir)))
    if not path.exists():
        raise ConfigError(f"directory does not exist: {path}")
    if not path.is_dir():
        raise ConfigError(f"not a directory: {path}")

    if getattr(args, "replace", False):
        replace = True
    else:
        replace = parse_bool(
            _first(
                get_env_default("REPLACE_EXISTING", environ=env),
                file_config.get("replace"),
                False,
            ),
            "replace",
        )

    parallel = parse_parallel(
        _first(
            getattr(args, "parallel", None),
            get_env_default("PARALLEL_WORKERS", environ=env),
            file_config.get("parallel"),
            DEFAULT_PARALLEL,
        )
    )

    if getattr(args, "https", False):
        protocol = "https"
    else:
        protocol = str(
            _first(
                get_env_default("CLONE_PROTOCOL", environ=env),
                file_config.get("clone_protocol"),
                "ssh",
            )
        ).lower()
    if protocol not in CLONE_PROTOCOLS:
        raise ConfigError("clone_protocol must be 'ssh' or 'https'")

    if getattr(args, "no_progress", False):
        show_progress = False
    else:
        show_progress = parse_bool(
            _first(file_config.get("progress"), True), "progress"
        )

    return BackupConfig(
        backup_dir=path,
        token=str(token),
        org_name=str(org_name) if org_name else None,
        user_name=str(user_name) if user_name else None,
        replace=replace,
        parallel=parallel,
        prefer_ssh=protocol == "ssh",
        show_progress=show_progress,
    )
