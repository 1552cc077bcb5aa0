"""Bare-metal cutover: replace the binary of a supervised service and restart it."""

import os
from typing import List, Optional

from .constants import LOCK_FILE_NAME, STAGING_SUFFIX
from .core import Deployer, console, logger
from .errors import RestartError, VerificationError
from .models import AssetPattern, BareMetalTarget, DeployStage, ServiceHandle, describe_release_tag
from .services.archive import ArchiveService
from .services.command_runner import CommandRunner
from .services.config_loader import BareMetalConfig
from .services.download import ArtifactFetcher
from .services.filesystem import FileSystemService
from .services.health import HealthProber
from .services.pipeline import Step, StepResult
from .services.registry import GitHubReleaseRegistry
from .services.resolver import ArtifactResolver
from .services.supervisor import SystemdSupervisor


class BareMetalDeployer(Deployer):
    """Idle -> PreChecked -> Fetched -> Extracted -> Restarted -> Verified."""

    def __init__(
        self,
        config: BareMetalConfig,
        registry=None,
        fetcher: Optional[ArtifactFetcher] = None,
        supervisor=None,
        command_runner: Optional[CommandRunner] = None,
    ):
        self.config = config
        self.binary_path = config.binary_path
        self.binary_name = os.path.basename(config.binary_path)
        self.binary_dir = os.path.dirname(config.binary_path)
        self.archive_path = os.path.join(self.binary_dir, config.asset_name)
        self.staging_path = f"{config.binary_path}{STAGING_SUFFIX}"

        self.command_runner = command_runner or CommandRunner(logger=logger, default_timeout=config.timeout)
        self.registry = registry or GitHubReleaseRegistry(
            token=config.token,
            api_url=config.api_url,
            timeout=config.timeout,
        )
        self.resolver = ArtifactResolver(self.registry, logger)
        self.fetcher = fetcher or ArtifactFetcher(logger=logger, console=console, timeout=config.timeout)
        self.supervisor = supervisor or SystemdSupervisor(self._run_cmd, user_scope=config.user_scope)
        self.prober = HealthProber(self.supervisor, logger)
        self.archive_service = ArchiveService()
        self.filesystem_service = FileSystemService(logger=logger, console=console)

        self.handle = ServiceHandle(name=config.service_name)
        self.current_version: Optional[str] = None
        self.previous_binary: Optional[str] = None

        super().__init__(
            target=BareMetalTarget(binary_path=config.binary_path, service_name=config.service_name),
            lock_path=os.path.join(self.binary_dir, LOCK_FILE_NAME),
            verify_attempts=config.verify_attempts,
            verify_interval=config.verify_interval,
            rollback_enabled=config.rollback,
        )

    def _run_cmd(self, cmd, **kwargs):
        return self.command_runner.run(cmd, **kwargs)

    def build_steps(self) -> List[Step]:
        return [
            Step(DeployStage.PRE_CHECKED, self.pre_check, "pre-check"),
            Step(DeployStage.FETCHED, self.fetch_artifact, "fetch"),
            Step(DeployStage.EXTRACTED, self.extract_binary, "extract"),
            Step(DeployStage.EXTRACTED, self.cleanup_archive, "cleanup"),
            Step(DeployStage.RESTARTED, self.restart_service, "restart"),
            Step(DeployStage.VERIFIED, self.verify_service, "verify"),
        ]

    def pre_check(self):
        result = self._run_cmd(
            [self.binary_path, "--version"],
            capture_output=True,
            error_cls=VerificationError,
        )
        self.current_version = (result.stdout or "").strip()
        if not self.current_version:
            raise VerificationError(f"{self.binary_path} --version reported no version.")

        console.print(f"Current binary: [bold]{self.current_version}[/bold]")
        self.require_healthy(self.prober, self.handle, "precheck_failed", attempts=1)

    def fetch_artifact(self):
        tag = self.config.tag
        logger.info("Deploying release %s (%s)", tag, describe_release_tag(tag))
        asset = self.resolver.resolve(self.config.repository, tag, AssetPattern(self.config.asset_name))
        self.attempt.artifact_ref = asset.download_ref
        self.fetcher.fetch(
            asset.download_ref,
            self.archive_path,
            token=self.config.token,
            description=f"Downloading {asset.name}",
        )

    def extract_binary(self):
        self.archive_service.extract_member(self.archive_path, self.binary_name, self.staging_path)
        self.previous_binary = self.filesystem_service.install_binary(self.staging_path, self.binary_path)

    def cleanup_archive(self):
        self.filesystem_service.remove_file(self.archive_path)

    def restart_service(self):
        self.supervisor.restart(self.config.service_name)

    def verify_service(self):
        self.require_healthy(self.prober, self.handle, "verification_failed")

    def should_rollback(self, failure: StepResult) -> bool:
        return self.previous_binary is not None and failure.step.stage in (
            DeployStage.RESTARTED,
            DeployStage.VERIFIED,
        )

    def rollback(self) -> bool:
        self.filesystem_service.restore_binary(self.previous_binary, self.binary_path)
        try:
            self.supervisor.restart(self.config.service_name)
        except RestartError as exc:
            logger.error("Restart after rollback failed: %s", exc)
            return False
        try:
            self.require_healthy(self.prober, self.handle, "verification_failed")
        except VerificationError as exc:
            logger.error("%s", exc)
            return False
        return True
