"""Filesystem helpers for observatory-deploy."""

import logging
import os
import shutil
import sys
from typing import Optional

from rich.console import Console

from observatorydeploy.constants import BINARY_MODE, PREVIOUS_SUFFIX
from observatorydeploy.errors import DeployError, ExtractionError


class FileSystemService:
    """Encapsulates file side effects around the live binary."""

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    def set_permissions(self, path: str, mode: int):
        if sys.platform == "win32":
            return

        try:
            os.chmod(path, mode)
        except OSError as exc:
            self.logger.warning("Could not set permissions on %s: %s", path, exc)

    def remove_file(self, path: str):
        if os.path.exists(path):
            try:
                os.remove(path)
                self.logger.debug("Removed file: %s", path)
            except OSError as exc:
                message = f"Warning: Could not remove {path}: {exc}"
                self.console.print(f"[yellow]{message}[/yellow]")
                self.logger.warning(message)

    @staticmethod
    def previous_path(live_path: str) -> str:
        return f"{live_path}{PREVIOUS_SUFFIX}"

    def install_binary(self, staged_path: str, live_path: str) -> Optional[str]:
        """Atomically move a validated staged binary over the live one.

        The live binary is copied aside first; the copy's path is returned, or
        None when there was no live binary.
        """
        self.set_permissions(staged_path, BINARY_MODE)
        if sys.platform != "win32" and not os.access(staged_path, os.X_OK):
            raise ExtractionError(f"Staged binary {staged_path} is not executable.")

        previous = None
        if os.path.exists(live_path):
            previous = self.previous_path(live_path)
            try:
                shutil.copy2(live_path, previous)
            except OSError as exc:
                raise ExtractionError(f"Could not keep a copy of {live_path}: {exc}") from exc

        try:
            os.replace(staged_path, live_path)
        except OSError as exc:
            raise ExtractionError(f"Could not replace {live_path}: {exc}") from exc

        self.logger.info("Installed new binary at %s", live_path)
        return previous

    def restore_binary(self, previous_path: str, live_path: str):
        if not os.path.exists(previous_path):
            raise DeployError(f"No previous binary to restore at {previous_path}.")
        staged = f"{live_path}.rollback"
        try:
            shutil.copy2(previous_path, staged)
            os.replace(staged, live_path)
        except OSError as exc:
            raise DeployError(f"Could not restore {live_path} from {previous_path}: {exc}") from exc
        self.logger.warning("Restored previous binary from %s", previous_path)
