"""Artifact fetcher with two-phase content negotiation and progress reporting."""

import hashlib
import os
from typing import Dict, Optional, Tuple

import requests
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from observatorydeploy.constants import CHUNK_SIZE, CONTENT_ACCEPT, METADATA_ACCEPT
from observatorydeploy.errors import TransferError


class ArtifactFetcher:
    """Downloads release assets to local files.

    Asset endpoints answer a metadata request with JSON describing the asset;
    the bytes are only served when the same resource (or the reference found
    in the metadata) is requested again with an octet-stream accept header.
    """

    def __init__(self, logger, console, requests_module=requests, timeout: Optional[float] = None):
        self.logger = logger
        self.console = console
        self.requests = requests_module
        self.timeout = timeout

    @staticmethod
    def _headers(token: Optional[str], accept: str) -> Dict[str, str]:
        headers = {"Accept": accept}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def negotiate(self, ref: str, token: Optional[str]) -> Tuple[str, Optional[int]]:
        """Return the content reference and expected size for `ref`."""
        try:
            with self.requests.get(
                ref,
                headers=self._headers(token, METADATA_ACCEPT),
                stream=True,
                timeout=self.timeout,
            ) as response:
                response.raise_for_status()
                content_type = response.headers.get("Content-Type", "").lower()
                if "json" not in content_type:
                    return ref, None
                metadata = response.json()
        except self.requests.RequestException as exc:
            raise TransferError(f"Asset metadata request failed for {ref}: {exc}") from exc
        except ValueError as exc:
            raise TransferError(f"Asset metadata for {ref} is not valid JSON.") from exc

        if not isinstance(metadata, dict):
            return ref, None

        size = metadata.get("size")
        return metadata.get("url") or ref, int(size) if size else None

    def fetch(
        self,
        ref: str,
        dest_path: str,
        token: Optional[str] = None,
        description: str = "Downloading artifact...",
        expected_sha256: Optional[str] = None,
    ) -> str:
        content_ref, expected_size = self.negotiate(ref, token)
        self.logger.info("Downloading %s to %s", content_ref, dest_path)

        hasher = hashlib.sha256() if expected_sha256 else None
        written = 0

        try:
            with self.requests.get(
                content_ref,
                headers=self._headers(token, CONTENT_ACCEPT),
                stream=True,
                allow_redirects=True,
                timeout=self.timeout,
            ) as response:
                response.raise_for_status()
                total_size = int(response.headers.get("Content-Length", 0)) or expected_size

                os.makedirs(os.path.dirname(os.path.abspath(dest_path)), exist_ok=True)

                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    DownloadColumn(),
                    TimeElapsedColumn(),
                    console=self.console,
                ) as progress:
                    task = progress.add_task(f"[cyan]{description}", total=total_size or None)
                    with open(dest_path, "wb") as file_obj:
                        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                            if not chunk:
                                continue
                            file_obj.write(chunk)
                            written += len(chunk)
                            if hasher:
                                hasher.update(chunk)
                            progress.update(task, advance=len(chunk))
        except self.requests.RequestException as exc:
            raise TransferError(f"Download failed for {content_ref}: {exc}") from exc
        except OSError as exc:
            raise TransferError(f"Could not write {dest_path}: {exc}") from exc

        if expected_size is not None and written != expected_size:
            raise TransferError(
                f"Downloaded {written} bytes from {content_ref}, expected {expected_size}."
            )

        if hasher:
            downloaded_sha = hasher.hexdigest()
            if downloaded_sha != expected_sha256:
                try:
                    os.remove(dest_path)
                except OSError:
                    pass
                raise TransferError(
                    f"Checksum mismatch for {dest_path}. Expected {expected_sha256}, "
                    f"but got {downloaded_sha}."
                )

        self.logger.debug("Downloaded %s bytes", written)
        return dest_path
