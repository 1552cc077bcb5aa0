"""External command execution for deploy steps."""

import shlex
import subprocess
from typing import List, Optional, Type

from observatorydeploy.errors import DeployError


class CommandRunner:
    """Runs systemctl, docker and probe commands, mapping failures to DeployError.

    Callers pick the error class so a failing restart surfaces as a
    RestartError and a failing version probe as a VerificationError.
    Nothing is retried.
    """

    def __init__(self, logger, default_timeout: Optional[float] = None):
        self.logger = logger
        self.default_timeout = default_timeout

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        input_text: Optional[str] = None,
        cwd: Optional[str] = None,
        error_cls: Type[DeployError] = DeployError,
    ) -> subprocess.CompletedProcess:
        printable = shlex.join(cmd)
        limit = self.default_timeout if timeout is None else timeout
        self.logger.debug("Running %s%s", printable, f" in {cwd}" if cwd else "")

        try:
            completed = subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                timeout=limit,
                input=input_text,
                cwd=cwd,
            )
        except FileNotFoundError as exc:
            raise error_cls(f"Required command not found: {cmd[0]}. Install it and retry.") from exc
        except subprocess.TimeoutExpired as exc:
            raise error_cls(f"`{printable}` timed out after {limit}s.") from exc
        except OSError as exc:
            raise error_cls(f"Could not start `{printable}`: {exc}") from exc

        if completed.returncode == 0:
            if capture_output and completed.stdout:
                self.logger.debug("%s printed: %s", cmd[0], completed.stdout.strip())
            return completed

        detail = (completed.stderr or "").strip() if capture_output else ""
        message = f"`{printable}` exited with status {completed.returncode}."
        if detail:
            message = f"{message}\n{detail}"

        if not check:
            self.logger.warning(message)
            return completed
        raise error_cls(message)
