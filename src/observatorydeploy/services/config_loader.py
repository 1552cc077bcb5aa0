"""Configuration loading and validation for observatory-deploy."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import yaml

from observatorydeploy.constants import (
    APP_NAME,
    DEFAULT_ASSET_NAME,
    DEFAULT_IMAGE_TAG,
    DEFAULT_PORT_BINDING,
    DEFAULT_REGISTRY,
    DEFAULT_VERIFY_ATTEMPTS,
    DEFAULT_VERIFY_INTERVAL,
    GITHUB_API_URL,
)
from observatorydeploy.errors import ConfigError, DeployError
from observatorydeploy.errors_catalog import actionable_error
from observatorydeploy.models import parse_release_tag


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "token",
        "repository",
        "tag",
        "actor",
        "image_tag",
        "project_dir",
        "registry",
        "binary_path",
        "service",
        "asset_name",
        "system",
        "api_url",
        "verify_attempts",
        "verify_interval",
        "rollback",
        "timeout",
        "verbose",
        "log_file",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise DeployError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise DeployError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise DeployError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise DeployError(f"Unknown configuration keys: {unknown_list}")

        return parsed


@dataclass(frozen=True)
class BareMetalConfig:
    token: str
    repository: str
    tag: str
    binary_path: str = f"./{APP_NAME}"
    service_name: str = APP_NAME
    asset_name: str = DEFAULT_ASSET_NAME
    user_scope: bool = True
    api_url: str = GITHUB_API_URL
    verify_attempts: int = DEFAULT_VERIFY_ATTEMPTS
    verify_interval: float = DEFAULT_VERIFY_INTERVAL
    rollback: bool = True
    timeout: Optional[float] = None


@dataclass(frozen=True)
class ContainerConfig:
    token: str
    actor: str
    repository: str
    image_tag: str = DEFAULT_IMAGE_TAG
    project_dir: str = os.path.join("~", APP_NAME)
    registry: str = DEFAULT_REGISTRY
    service_name: str = APP_NAME
    port_binding: str = DEFAULT_PORT_BINDING
    verify_attempts: int = DEFAULT_VERIFY_ATTEMPTS
    verify_interval: float = DEFAULT_VERIFY_INTERVAL
    rollback: bool = True
    timeout: Optional[float] = None

    @property
    def image(self) -> str:
        # ghcr.io rejects upper-case repository names
        return f"{self.registry}/{self.repository.lower()}:{self.image_tag}"


def _require(values: Dict[str, Any], fields: Sequence[str]):
    missing = [name for name in fields if not str(values.get(name) or "").strip()]
    if missing:
        raise ConfigError(actionable_error("missing_config", fields=", ".join(missing)), missing=missing)


def _number(values: Dict[str, Any], key: str, cast, default, minimum):
    value = values.get(key)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ConfigError(f"Invalid value for {key}: {value!r} is not a number.")
    try:
        number = cast(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {key}: {value!r} is not a number.") from None
    if number < minimum:
        raise ConfigError(f"Invalid value for {key}: must be at least {minimum}, got {value!r}.")
    return number


def _flag(values: Dict[str, Any], key: str, default: bool) -> bool:
    value = values.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"Invalid value for {key}: expected true or false, got {value!r}.")
    return value


def build_bare_metal_config(values: Dict[str, Any]) -> BareMetalConfig:
    _require(values, ("token", "repository", "tag"))
    return BareMetalConfig(
        token=str(values["token"]).strip(),
        repository=str(values["repository"]).strip(),
        tag=parse_release_tag(str(values["tag"])),
        binary_path=os.path.abspath(os.path.expanduser(values.get("binary_path") or f"./{APP_NAME}")),
        service_name=values.get("service") or APP_NAME,
        asset_name=values.get("asset_name") or DEFAULT_ASSET_NAME,
        user_scope=not _flag(values, "system", False),
        api_url=values.get("api_url") or GITHUB_API_URL,
        verify_attempts=_number(values, "verify_attempts", int, DEFAULT_VERIFY_ATTEMPTS, 1),
        verify_interval=_number(values, "verify_interval", float, DEFAULT_VERIFY_INTERVAL, 0),
        rollback=_flag(values, "rollback", True),
        timeout=_number(values, "timeout", float, None, 1),
    )


def build_container_config(values: Dict[str, Any]) -> ContainerConfig:
    _require(values, ("token", "actor", "repository"))
    project_dir = values.get("project_dir") or os.path.join("~", APP_NAME)
    return ContainerConfig(
        token=str(values["token"]).strip(),
        actor=str(values["actor"]).strip(),
        repository=str(values["repository"]).strip(),
        image_tag=str(values.get("image_tag") or DEFAULT_IMAGE_TAG).strip(),
        project_dir=os.path.abspath(os.path.expanduser(project_dir)),
        registry=values.get("registry") or DEFAULT_REGISTRY,
        service_name=values.get("service") or APP_NAME,
        verify_attempts=_number(values, "verify_attempts", int, DEFAULT_VERIFY_ATTEMPTS, 1),
        verify_interval=_number(values, "verify_interval", float, DEFAULT_VERIFY_INTERVAL, 0),
        rollback=_flag(values, "rollback", True),
        timeout=_number(values, "timeout", float, None, 1),
    )
