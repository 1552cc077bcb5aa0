"""Release registry client backed by the GitHub REST API."""

from typing import Any, Dict, List, Optional

import requests

from observatorydeploy.constants import GITHUB_API_URL, GITHUB_API_VERSION, METADATA_ACCEPT
from observatorydeploy.errors import ResolutionError
from observatorydeploy.errors_catalog import actionable_error
from observatorydeploy.models import Asset


class ArtifactRegistry:
    """Lists the assets published under a release."""

    def list_assets(self, repository: str, tag: str) -> List[Asset]:
        raise NotImplementedError

    def list_latest_assets(self, repository: str) -> List[Asset]:
        raise NotImplementedError


class GitHubReleaseRegistry(ArtifactRegistry):
    """Queries `/repos/{repository}/releases` for asset listings."""

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: str = GITHUB_API_URL,
        timeout: Optional[float] = None,
        requests_module=requests,
    ):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.requests = requests_module

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": METADATA_ACCEPT,
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _get_release(self, repository: str, path: str, label: str) -> Dict[str, Any]:
        url = f"{self.api_url}/repos/{repository}/releases/{path}"
        try:
            response = self.requests.get(url, headers=self._headers(), timeout=self.timeout)
        except self.requests.RequestException as exc:
            raise ResolutionError(f"Release query failed for {repository}: {exc}") from exc

        if response.status_code == 404:
            raise ResolutionError(
                actionable_error("release_not_found", tag=label, repository=repository)
            )
        if not 200 <= response.status_code < 300:
            raise ResolutionError(
                f"Release query for {repository} ({label}) returned HTTP {response.status_code}."
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ResolutionError(f"Release listing for {repository} is not valid JSON.") from exc

        if not isinstance(payload, dict):
            raise ResolutionError(f"Release listing for {repository} has an unexpected format.")
        return payload

    @staticmethod
    def _parse_assets(release: Dict[str, Any]) -> List[Asset]:
        assets = []
        for item in release.get("assets") or []:
            if not isinstance(item, dict) or not item.get("name") or not item.get("url"):
                continue
            assets.append(
                Asset(
                    name=item["name"],
                    download_ref=item["url"],
                    size=int(item.get("size") or 0),
                    content_ref=item.get("browser_download_url"),
                )
            )
        return assets

    def list_assets(self, repository: str, tag: str) -> List[Asset]:
        release = self._get_release(repository, f"tags/{tag}", tag)
        return self._parse_assets(release)

    def list_latest_assets(self, repository: str) -> List[Asset]:
        release = self._get_release(repository, "latest", "latest")
        return self._parse_assets(release)
