"""Artifact resolution: pick the release asset matching a name pattern."""

from typing import Iterable

from observatorydeploy.errors import ResolutionError
from observatorydeploy.errors_catalog import actionable_error
from observatorydeploy.models import Asset, AssetPattern


def select_asset(assets: Iterable[Asset], pattern: AssetPattern) -> Asset:
    """Return the first asset whose name satisfies the pattern."""
    for asset in assets:
        if pattern.matches(asset.name):
            return asset
    raise LookupError(str(pattern))


class ArtifactResolver:
    """Maps a release tag to the fetch reference of its matching asset."""

    def __init__(self, registry, logger):
        self.registry = registry
        self.logger = logger

    def resolve(self, repository: str, tag: str, pattern: AssetPattern) -> Asset:
        assets = self.registry.list_assets(repository, tag)
        return self._select(assets, pattern, repository, tag)

    def resolve_latest(self, repository: str, pattern: AssetPattern) -> Asset:
        assets = self.registry.list_latest_assets(repository)
        return self._select(assets, pattern, repository, "latest")

    def _select(self, assets, pattern: AssetPattern, repository: str, tag: str) -> Asset:
        self.logger.debug("Release %s lists %s asset(s)", tag, len(assets))
        try:
            asset = select_asset(assets, pattern)
        except LookupError:
            raise ResolutionError(
                actionable_error(
                    "asset_not_found",
                    pattern=str(pattern),
                    tag=tag,
                    repository=repository,
                )
            ) from None

        self.logger.info("Resolved asset %s: %s", asset.name, asset.download_ref)
        return asset
