"""Health probing on top of a supervisor or container runtime status query."""

import time

from observatorydeploy.errors import DeployError
from observatorydeploy.models import HealthStatus, LifecycleState, ServiceHandle

_HEALTH_BY_STATE = {
    LifecycleState.RUNNING: HealthStatus.HEALTHY,
    LifecycleState.STOPPED: HealthStatus.UNHEALTHY,
    LifecycleState.FAILED: HealthStatus.UNHEALTHY,
    LifecycleState.UNKNOWN: HealthStatus.UNKNOWN,
}


class HealthProber:
    """Classifies a managed service as healthy, unhealthy or unknown.

    `status_source` is anything exposing `status(name) -> LifecycleState`.
    A failing status query yields UNKNOWN, which callers must treat as
    blocking.
    """

    def __init__(self, status_source, logger):
        self.status_source = status_source
        self.logger = logger

    def probe(self, handle: ServiceHandle) -> HealthStatus:
        try:
            state = self.status_source.status(handle.name)
        except DeployError as exc:
            self.logger.warning("Status query for %s failed: %s", handle.name, exc)
            state = LifecycleState.UNKNOWN

        handle.lifecycle_state = state
        health = _HEALTH_BY_STATE[state]
        self.logger.debug("Service %s is %s (%s)", handle.name, state.value, health.value)
        return health

    def wait_until_healthy(self, handle: ServiceHandle, attempts: int = 1, interval: float = 0.0) -> HealthStatus:
        health = HealthStatus.UNKNOWN
        for attempt in range(1, max(1, attempts) + 1):
            health = self.probe(handle)
            if health == HealthStatus.HEALTHY:
                return health
            if attempt < attempts:
                self.logger.info(
                    "Service %s is %s, checking again in %.1fs (%s/%s)",
                    handle.name,
                    health.value,
                    interval,
                    attempt,
                    attempts,
                )
                time.sleep(interval)
        return health
