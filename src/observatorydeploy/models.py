"""Shared domain models for observatory-deploy."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from packaging.version import InvalidVersion, Version

from .errors import ConfigError


class LifecycleState(str, Enum):
    UNKNOWN = "unknown"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


class DeployStage(str, Enum):
    IDLE = "idle"
    PRE_CHECKED = "pre_checked"
    FETCHED = "fetched"
    EXTRACTED = "extracted"
    RESTARTED = "restarted"
    AUTHENTICATED = "authenticated"
    STOPPED = "stopped"
    PULLED = "pulled"
    CONFIGURED = "configured"
    STARTED = "started"
    VERIFIED = "verified"
    ABORTED = "aborted"


def parse_release_tag(tag: Optional[str]) -> str:
    """Validate a release tag and return it stripped."""
    clean = (tag or "").strip()
    if not clean:
        raise ConfigError("Release tag must not be empty.", missing=["tag"])
    return clean


def describe_release_tag(tag: str) -> str:
    try:
        return str(Version(tag))
    except InvalidVersion:
        return tag


@dataclass(frozen=True)
class Asset:
    """A release asset as listed by the registry."""

    name: str
    download_ref: str
    size: int = 0
    content_ref: Optional[str] = None


@dataclass(frozen=True)
class AssetPattern:
    """Asset name matcher, either the exact name or a name suffix."""

    value: str
    mode: str = "exact"

    def matches(self, name: str) -> bool:
        if self.mode == "suffix":
            return name.endswith(self.value)
        return name == self.value

    def __str__(self) -> str:
        return f"*{self.value}" if self.mode == "suffix" else self.value


@dataclass
class ServiceHandle:
    name: str
    lifecycle_state: LifecycleState = LifecycleState.UNKNOWN


@dataclass(frozen=True)
class BareMetalTarget:
    binary_path: str
    service_name: str


@dataclass(frozen=True)
class ContainerTarget:
    image_ref: str
    compose_dir: str
    service_name: str


DeploymentTarget = Union[BareMetalTarget, ContainerTarget]


@dataclass
class DeployAttempt:
    """One deployment run; logged when it ends and then discarded."""

    target: DeploymentTarget
    artifact_ref: Optional[str] = None
    stage: DeployStage = DeployStage.IDLE
    outcome: Optional[str] = None
    failed_stage: Optional[DeployStage] = None
    error: Optional[str] = None
    rolled_back: bool = False
    history: List[DeployStage] = field(default_factory=list)

    def advance(self, stage: DeployStage):
        self.stage = stage
        self.history.append(stage)

    def abort(self, failed_stage: DeployStage, error: str):
        self.failed_stage = failed_stage
        self.error = error
        self.outcome = "aborted"
        self.advance(DeployStage.ABORTED)

    def succeed(self):
        self.outcome = "success"

    @property
    def succeeded(self) -> bool:
        return self.outcome == "success"
