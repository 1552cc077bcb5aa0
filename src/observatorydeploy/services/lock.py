"""Per-target deployment lock."""

import os
from datetime import datetime, timezone

from observatorydeploy.errors import DeployError
from observatorydeploy.errors_catalog import actionable_error


class DeployLock:
    """Lock file created exclusively; a second holder fails immediately."""

    def __init__(self, lock_path: str, logger):
        self.lock_path = lock_path
        self.logger = logger
        self.acquired = False

    def acquire(self):
        lock_dir = os.path.dirname(os.path.abspath(self.lock_path))
        try:
            os.makedirs(lock_dir, exist_ok=True)
        except OSError as exc:
            raise DeployError(f"Could not create lock directory '{lock_dir}': {exc}") from exc

        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            raise DeployError(actionable_error("deploy_locked", path=self.lock_path)) from None
        except OSError as exc:
            raise DeployError(f"Could not create lock file '{self.lock_path}': {exc}") from exc

        with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
            file_obj.write(f"{os.getpid()} {datetime.now(timezone.utc).isoformat()}\n")
        self.acquired = True
        self.logger.debug("Acquired deploy lock %s", self.lock_path)

    def release(self):
        if not self.acquired:
            return
        try:
            os.remove(self.lock_path)
        except OSError as exc:
            self.logger.warning("Could not remove lock file '%s': %s", self.lock_path, exc)
        self.acquired = False

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
