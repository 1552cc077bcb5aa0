import logging
from typing import List, Optional

from rich.console import Console

from .errors import DeployError, VerificationError
from .errors_catalog import actionable_error
from .models import DeployAttempt, DeployStage, DeploymentTarget, HealthStatus, ServiceHandle
from .services.health import HealthProber
from .services.lock import DeployLock
from .services.pipeline import Step, StepResult, run_steps

console = Console()
logger = logging.getLogger("observatorydeploy")


class Deployer:
    """Runs one deploy attempt as a pipeline of steps under a per-target lock.

    Subclasses provide the steps and, optionally, a rollback for failures
    that happen after the cutover began.
    """

    def __init__(
        self,
        target: DeploymentTarget,
        lock_path: str,
        verify_attempts: int = 1,
        verify_interval: float = 0.0,
        rollback_enabled: bool = True,
    ):
        self.attempt = DeployAttempt(target=target)
        self.lock = DeployLock(lock_path, logger)
        self.verify_attempts = verify_attempts
        self.verify_interval = verify_interval
        self.rollback_enabled = rollback_enabled

    def build_steps(self) -> List[Step]:
        raise NotImplementedError

    def should_rollback(self, failure: StepResult) -> bool:
        return False

    def rollback(self) -> bool:
        return False

    def finish(self):
        """Hook run after the pipeline, whatever its outcome."""

    def require_healthy(
        self,
        prober: HealthProber,
        handle: ServiceHandle,
        code: str,
        attempts: Optional[int] = None,
    ):
        attempts = self.verify_attempts if attempts is None else attempts
        health = prober.wait_until_healthy(handle, attempts=attempts, interval=self.verify_interval)
        if health != HealthStatus.HEALTHY:
            raise VerificationError(
                actionable_error(code, service=handle.name, status=handle.lifecycle_state.value)
            )
        console.print(f"[green]Service {handle.name} is running.[/green]")

    def _on_step_started(self, step: Step):
        console.print(f"[blue]{step.name.capitalize()}...[/blue]")
        logger.info("Starting step: %s", step.name)

    def _on_step_completed(self, step: Step):
        if self.attempt.stage != step.stage:
            self.attempt.advance(step.stage)

    def _attempt_rollback(self, failure: StepResult):
        if not (self.rollback_enabled and self.should_rollback(failure)):
            return

        console.print("[yellow]Rolling back to the previous artifact...[/yellow]")
        try:
            self.attempt.rolled_back = self.rollback()
        except DeployError as exc:
            console.print(f"[bold red]Rollback failed:[/bold red] {exc}")
            logger.error("Rollback failed: %s", exc)
            return

        if self.attempt.rolled_back:
            console.print("[yellow]Previous artifact restored and healthy.[/yellow]")
        else:
            console.print("[bold red]Previous artifact restored but the service is not healthy.[/bold red]")

    def _execute(self) -> int:
        result = run_steps(self.build_steps(), self._on_step_started, self._on_step_completed)
        try:
            if result.ok:
                self.attempt.succeed()
                return 0

            failure = result.failure
            self.attempt.abort(failure.step.stage, str(failure.error))
            console.print(f"[bold red]Error:[/bold red] {failure.error}")
            logger.error("Step '%s' failed: %s", failure.step.name, failure.error)
            self._attempt_rollback(failure)
            return 1
        finally:
            self.finish()

    def run(self) -> int:
        exit_code = 1
        try:
            logger.info("Starting deployment of %s", self.attempt.target)
            self.lock.acquire()
            try:
                exit_code = self._execute()
            finally:
                self.lock.release()
        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            self.attempt.abort(self.attempt.stage, "Operation cancelled by user.")
            exit_code = 1
        except DeployError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            self.attempt.abort(self.attempt.stage, str(exc))
            exit_code = 1
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            self.attempt.abort(self.attempt.stage, str(exc))
            exit_code = 1
        finally:
            self._log_outcome()

        return exit_code

    def _log_outcome(self):
        attempt = self.attempt
        stages = " -> ".join(stage.value for stage in attempt.history) or DeployStage.IDLE.value
        if attempt.succeeded:
            console.print(f"[bold green]Deployment finished:[/bold green] {attempt.artifact_ref or ''}")
            logger.info("Deployment succeeded (%s)", stages)
            return

        logger.error(
            "Deployment aborted at stage '%s' (%s); rolled back: %s",
            attempt.failed_stage.value if attempt.failed_stage else "unknown",
            stages,
            "yes" if attempt.rolled_back else "no",
        )
