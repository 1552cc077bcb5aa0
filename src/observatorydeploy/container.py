"""Container cutover: pull a release image and bring the compose service up on it."""

import os
from typing import List, Optional

from .constants import LOCK_FILE_NAME, REPORT_LOG_LINES
from .core import Deployer, console, logger
from .errors import DeployError, VerificationError
from .models import ContainerTarget, DeployStage, ServiceHandle
from .services.command_runner import CommandRunner
from .services.config_loader import ContainerConfig
from .services.docker_runtime import ComposeFileService, DockerComposeRuntime
from .services.health import HealthProber
from .services.pipeline import Step, StepResult


class ContainerDeployer(Deployer):
    def __init__(
        self,
        config: ContainerConfig,
        runtime=None,
        command_runner: Optional[CommandRunner] = None,
    ):
        self.config = config
        self.image = config.image
        self.command_runner = command_runner or CommandRunner(logger=logger, default_timeout=config.timeout)
        self.runtime = runtime or DockerComposeRuntime(
            logger=logger,
            run_cmd=self.command_runner.run,
            project_dir=config.project_dir,
        )
        self.compose_files = ComposeFileService(config.project_dir, logger)
        self.prober = HealthProber(self.runtime, logger)
        self.handle = ServiceHandle(name=config.service_name)

        self.bootstrap = False
        self.previous_image: Optional[str] = None
        self.previous_image_id: Optional[str] = None
        self.service_stopped = False
        self.brought_up = False

        super().__init__(
            target=ContainerTarget(
                image_ref=self.image,
                compose_dir=config.project_dir,
                service_name=config.service_name,
            ),
            lock_path=os.path.join(config.project_dir, LOCK_FILE_NAME),
            verify_attempts=config.verify_attempts,
            verify_interval=config.verify_interval,
            rollback_enabled=config.rollback,
        )
        self.attempt.artifact_ref = self.image

    def build_steps(self) -> List[Step]:
        return [
            Step(DeployStage.PRE_CHECKED, self.pre_check, "pre-check"),
            Step(DeployStage.AUTHENTICATED, self.authenticate, "authenticate"),
            Step(DeployStage.STOPPED, self.stop_service, "stop"),
            Step(DeployStage.PULLED, self.pull_image, "pull"),
            Step(DeployStage.CONFIGURED, self.configure, "configure"),
            Step(DeployStage.STARTED, self.bring_up, "bring-up"),
            Step(DeployStage.VERIFIED, self.verify_service, "verify"),
        ]

    def pre_check(self):
        # decided under the deploy lock
        self.bootstrap = not self.compose_files.is_bootstrapped()
        if self.bootstrap:
            logger.info("No compose topology in %s yet; nothing to probe.", self.config.project_dir)
            return
        self.require_healthy(self.prober, self.handle, "precheck_failed", attempts=1)

    def authenticate(self):
        self.runtime.login(self.config.registry, self.config.actor, self.config.token)

    def stop_service(self):
        if self.bootstrap:
            logger.info("No compose topology in %s yet; nothing to stop.", self.config.project_dir)
            return
        self.previous_image = self.compose_files.read_image(self.config.service_name)
        if self.previous_image:
            # pins the running content even when the tag is re-pulled
            self.previous_image_id = self.runtime.image_id(self.previous_image)
        self.service_stopped = self.runtime.down()

    def pull_image(self):
        self.runtime.pull(self.image)

    def configure(self):
        if self.bootstrap:
            console.print(f"[blue]Bootstrapping compose topology in {self.config.project_dir}[/blue]")
            self.compose_files.write_topology(
                self.config.service_name,
                self.image,
                port_binding=self.config.port_binding,
            )
            return
        self.compose_files.write_override(self.config.service_name, self.image)

    def bring_up(self):
        self.brought_up = True
        self.runtime.up()

    def verify_service(self):
        self.require_healthy(self.prober, self.handle, "verification_failed")

    def finish(self):
        if not self.brought_up:
            return
        try:
            report = self.runtime.report(REPORT_LOG_LINES)
        except DeployError as exc:
            logger.warning("Could not collect compose status: %s", exc)
            return
        if report:
            console.print(report, markup=False, highlight=False)

    def should_rollback(self, failure: StepResult) -> bool:
        if self.bootstrap or not (self.previous_image or self.service_stopped):
            return False
        return failure.step.stage in (
            DeployStage.PULLED,
            DeployStage.CONFIGURED,
            DeployStage.STARTED,
            DeployStage.VERIFIED,
        )

    def rollback(self) -> bool:
        """Bring the service back up on the content it ran before the stop step.

        A re-pulled tag such as `latest` is pointed back at the image id
        recorded before the stop, so restoring the same reference is enough.
        """
        if self.previous_image:
            logger.warning("Restoring previous image %s", self.previous_image)
            if self.previous_image_id:
                self.runtime.tag(self.previous_image_id, self.previous_image)
            self.compose_files.write_override(self.config.service_name, self.previous_image)
        self.brought_up = True
        self.runtime.up()
        try:
            self.require_healthy(self.prober, self.handle, "verification_failed")
        except VerificationError as exc:
            logger.error("%s", exc)
            return False
        return True
