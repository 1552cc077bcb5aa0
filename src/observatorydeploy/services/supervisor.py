"""Process supervisor collaborators for observatory-deploy."""

from typing import Callable, List, Sequence

from observatorydeploy.errors import DeployError, RestartError
from observatorydeploy.models import LifecycleState

_SYSTEMD_STATES = {
    "active": LifecycleState.RUNNING,
    "reloading": LifecycleState.RUNNING,
    "inactive": LifecycleState.STOPPED,
    "deactivating": LifecycleState.STOPPED,
    "failed": LifecycleState.FAILED,
}


class ServiceSupervisor:
    """Lifecycle interface of the process supervisor."""

    def status(self, service: str) -> LifecycleState:
        raise NotImplementedError

    def restart(self, service: str):
        raise NotImplementedError


class SystemdSupervisor(ServiceSupervisor):
    """Drives systemd units through `systemctl`, in user or system scope."""

    def __init__(self, run_cmd: Callable, user_scope: bool = True):
        self.run_cmd = run_cmd
        self.user_scope = user_scope

    def _systemctl(self, *args: str) -> List[str]:
        cmd = ["systemctl"]
        if self.user_scope:
            cmd.append("--user")
        return cmd + list(args)

    def status(self, service: str) -> LifecycleState:
        result = self.run_cmd(self._systemctl("is-active", service), check=False, capture_output=True)
        state = (result.stdout or "").strip().splitlines()
        return _SYSTEMD_STATES.get(state[0] if state else "", LifecycleState.UNKNOWN)

    def restart(self, service: str):
        self.run_cmd(self._systemctl("restart", service), capture_output=True, error_cls=RestartError)

    def ensure_available(self):
        result = self.run_cmd(self._systemctl("--no-pager", "status"), check=False, capture_output=True)
        if result.returncode != 0:
            scope = "user" if self.user_scope else "system"
            hint = ' Run "sudo loginctl enable-linger $USER" and reboot.' if self.user_scope else ""
            raise DeployError(f"systemd is not running in {scope} mode.{hint}")

    def daemon_reload(self):
        self.run_cmd(self._systemctl("daemon-reload"), capture_output=True)

    def enable(self, units: Sequence[str]):
        self.run_cmd(self._systemctl("enable", *units), capture_output=True)

    def start(self, units: Sequence[str]):
        self.run_cmd(self._systemctl("start", *units), capture_output=True)
