"""Installer: download the latest published binary into a directory."""

import os
import tempfile
from typing import List, Optional

from .constants import DEFAULT_INSTALL_REPOSITORY, DEFAULT_INSTALL_SUFFIX
from .core import console, logger
from .errors import DeployError
from .models import AssetPattern
from .services.archive import ArchiveService
from .services.download import ArtifactFetcher
from .services.registry import GitHubReleaseRegistry
from .services.resolver import ArtifactResolver


class Installer:
    def __init__(
        self,
        repository: str = DEFAULT_INSTALL_REPOSITORY,
        suffix: str = DEFAULT_INSTALL_SUFFIX,
        destination: Optional[str] = None,
        registry=None,
        fetcher: Optional[ArtifactFetcher] = None,
        timeout: Optional[float] = None,
    ):
        self.repository = repository
        self.pattern = AssetPattern(suffix, mode="suffix")
        self.destination = os.path.abspath(destination or os.getcwd())
        self.registry = registry or GitHubReleaseRegistry(timeout=timeout)
        self.resolver = ArtifactResolver(self.registry, logger)
        self.fetcher = fetcher or ArtifactFetcher(logger=logger, console=console, timeout=timeout)
        self.archive_service = ArchiveService()

    def install(self) -> List[str]:
        asset = self.resolver.resolve_latest(self.repository, self.pattern)
        # the browser URL serves bytes directly and needs no credential
        ref = asset.content_ref or asset.download_ref

        fd, archive_path = tempfile.mkstemp(prefix="observatory-", suffix=".tar.gz")
        os.close(fd)
        try:
            self.fetcher.fetch(ref, archive_path, description=f"Downloading {asset.name}")
            os.makedirs(self.destination, exist_ok=True)
            return self.archive_service.safe_extract_tar(archive_path, self.destination)
        finally:
            try:
                os.remove(archive_path)
            except OSError:
                pass

    def run(self) -> int:
        try:
            extracted = self.install()
        except DeployError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            console.print(f"See https://github.com/{self.repository}/releases/latest")
            logger.error(str(exc))
            return 1

        for path in extracted:
            console.print(f"[green]Installed {path}[/green]")
        return 0
