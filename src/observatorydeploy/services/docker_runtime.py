"""Docker runtime services for observatory-deploy."""

import os
import subprocess
from typing import Callable, List, Optional

import yaml

from observatorydeploy.constants import (
    COMPOSE_FILE,
    COMPOSE_OVERRIDE_FILE,
    CONTAINER_CONFIG_DIR,
    CONTAINER_CONFIG_FILE,
    DEFAULT_PORT_BINDING,
)
from observatorydeploy.errors import DeployError
from observatorydeploy.models import LifecycleState


class ContainerRuntime:
    """Lifecycle interface of the container runtime."""

    def login(self, registry: str, actor: str, token: str):
        raise NotImplementedError

    def down(self) -> bool:
        raise NotImplementedError

    def pull(self, image: str):
        raise NotImplementedError

    def up(self):
        raise NotImplementedError

    def image_id(self, image: str) -> Optional[str]:
        raise NotImplementedError

    def tag(self, source: str, target: str):
        raise NotImplementedError

    def status(self, service: str) -> LifecycleState:
        raise NotImplementedError

    def report(self, tail: int) -> str:
        raise NotImplementedError


class DockerComposeRuntime(ContainerRuntime):
    """Manages a compose project through `docker compose` or `docker-compose`."""

    def __init__(self, logger, run_cmd: Callable, project_dir: str, subprocess_module=subprocess):
        self.logger = logger
        self.run_cmd = run_cmd
        self.project_dir = project_dir
        self.subprocess = subprocess_module
        self._compose_cmd: Optional[List[str]] = None

    def get_docker_compose_cmd(self) -> List[str]:
        try:
            self.subprocess.run(["docker", "compose", "version"], check=True, capture_output=True)
            return ["docker", "compose"]
        except (self.subprocess.CalledProcessError, FileNotFoundError):
            try:
                self.subprocess.run(["docker-compose", "--version"], check=True, capture_output=True)
                return ["docker-compose"]
            except (self.subprocess.CalledProcessError, FileNotFoundError):
                raise DeployError(
                    "Docker Compose is not available. Install Docker Compose v2 (`docker compose`) "
                    "or v1 (`docker-compose`) and try again."
                )

    @property
    def compose_cmd(self) -> List[str]:
        if self._compose_cmd is None:
            self._compose_cmd = self.get_docker_compose_cmd()
        return self._compose_cmd

    def _compose(self, *args: str, **kwargs):
        kwargs.setdefault("capture_output", True)
        return self.run_cmd(self.compose_cmd + list(args), cwd=self.project_dir, **kwargs)

    def login(self, registry: str, actor: str, token: str):
        self.logger.info("Logging in to %s as %s", registry, actor)
        self.run_cmd(
            ["docker", "login", registry, "-u", actor, "--password-stdin"],
            capture_output=True,
            input_text=token,
        )

    def down(self) -> bool:
        result = self._compose("down", check=False)
        if result.returncode != 0:
            self.logger.info("No composed service was stopped (exit %s).", result.returncode)
            return False
        return True

    def pull(self, image: str):
        self.logger.info("Pulling %s", image)
        self.run_cmd(["docker", "pull", image], capture_output=True)

    def up(self):
        self._compose("up", "-d")

    def image_id(self, image: str) -> Optional[str]:
        """Return the local content id of `image`, or None when it is not present."""
        result = self.run_cmd(
            ["docker", "image", "inspect", "--format", "{{.Id}}", image],
            check=False,
            capture_output=True,
        )
        image_id = (result.stdout or "").strip()
        if result.returncode != 0 or not image_id:
            return None
        return image_id

    def tag(self, source: str, target: str):
        self.logger.info("Tagging %s as %s", source, target)
        self.run_cmd(["docker", "tag", source, target], capture_output=True)

    def status(self, service: str) -> LifecycleState:
        running = self._compose("ps", "--services", "--filter", "status=running")
        if service in (running.stdout or "").split():
            return LifecycleState.RUNNING

        exited = self._compose("ps", "--services", "--filter", "status=exited")
        if service in (exited.stdout or "").split():
            return LifecycleState.FAILED
        return LifecycleState.STOPPED

    def report(self, tail: int) -> str:
        ps = self._compose("ps", check=False)
        logs = self._compose("logs", f"--tail={tail}", check=False)
        return "\n".join(part for part in ((ps.stdout or "").rstrip(), (logs.stdout or "").rstrip()) if part)


class ComposeFileService:
    """Writes the compose topology and the image override."""

    def __init__(self, project_dir: str, logger):
        self.project_dir = project_dir
        self.logger = logger

    @property
    def compose_path(self) -> str:
        return os.path.join(self.project_dir, COMPOSE_FILE)

    @property
    def override_path(self) -> str:
        return os.path.join(self.project_dir, COMPOSE_OVERRIDE_FILE)

    def is_bootstrapped(self) -> bool:
        return os.path.exists(self.compose_path)

    def build_topology(self, service: str, image: str, port_binding: str = DEFAULT_PORT_BINDING):
        config_dir = os.path.join(self.project_dir, "config")
        return {
            "services": {
                service: {
                    "image": image,
                    "ports": [port_binding],
                    "volumes": [f"{config_dir}:{CONTAINER_CONFIG_DIR}"],
                    "restart": "on-failure",
                    "command": ["--config", f"{CONTAINER_CONFIG_DIR}/{CONTAINER_CONFIG_FILE}"],
                }
            }
        }

    def write_topology(self, service: str, image: str, port_binding: str = DEFAULT_PORT_BINDING):
        config_dir = os.path.join(self.project_dir, "config")
        try:
            os.makedirs(config_dir, exist_ok=True)
        except OSError as exc:
            raise DeployError(f"Could not create {config_dir}: {exc}") from exc
        self._write(self.compose_path, self.build_topology(service, image, port_binding))
        self.logger.info("Wrote service topology to %s", self.compose_path)

    def write_override(self, service: str, image: str):
        self._write(self.override_path, {"services": {service: {"image": image}}})
        self.logger.info("Selected image %s in %s", image, self.override_path)

    def read_image(self, service: str) -> Optional[str]:
        """Return the image currently selected for `service`, override first."""
        for path in (self.override_path, self.compose_path):
            image = self._read_service_image(path, service)
            if image:
                return image
        return None

    def _read_service_image(self, path: str, service: str) -> Optional[str]:
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as file_obj:
                parsed = yaml.safe_load(file_obj)
        except (yaml.YAMLError, OSError) as exc:
            self.logger.warning("Could not read %s: %s", path, exc)
            return None
        try:
            return parsed["services"][service]["image"]
        except (KeyError, TypeError):
            return None

    @staticmethod
    def _write(path: str, content):
        try:
            os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
            with open(path, "w", encoding="utf-8", newline="\n") as file_obj:
                yaml.safe_dump(content, file_obj, sort_keys=False)
        except OSError as exc:
            raise DeployError(f"Could not write {path}: {exc}") from exc
