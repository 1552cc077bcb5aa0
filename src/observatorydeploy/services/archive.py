"""Archive extraction helpers for observatory-deploy."""

import os
import shutil
import tarfile
from pathlib import Path
from typing import List

from observatorydeploy.errors import ExtractionError


class ArchiveService:
    """Encapsulates safe tarball extraction logic."""

    def is_within_dir(self, base_dir: Path, candidate: Path) -> bool:
        try:
            return os.path.commonpath([str(base_dir), str(candidate)]) == str(base_dir)
        except ValueError:
            return False

    def _check_member(self, member: tarfile.TarInfo, base: Path):
        target_path = (base / member.name).resolve()
        if not self.is_within_dir(base, target_path):
            raise ExtractionError(
                f"Unsafe archive entry detected: `{member.name}`. "
                "Extraction aborted to prevent path traversal."
            )
        if member.issym() or member.islnk():
            raise ExtractionError(f"Unsafe archive entry detected: `{member.name}` is a link.")
        if not (member.isfile() or member.isdir()):
            raise ExtractionError(f"Unsupported archive entry type: `{member.name}`.")

    @staticmethod
    def _find_member(archive: tarfile.TarFile, member_name: str) -> tarfile.TarInfo:
        for candidate in (member_name, f"./{member_name}"):
            try:
                return archive.getmember(candidate)
            except KeyError:
                continue
        raise ExtractionError(f"Archive does not contain the expected entry `{member_name}`.")

    def extract_member(self, archive_path: str, member_name: str, output_path: str) -> str:
        """Write exactly one regular-file entry of the archive to `output_path`."""
        try:
            with tarfile.open(archive_path, "r:*") as archive:
                member = self._find_member(archive, member_name)
                if not member.isfile():
                    raise ExtractionError(f"Archive entry `{member_name}` is not a regular file.")

                source = archive.extractfile(member)
                if source is None:
                    raise ExtractionError(f"Could not read archive entry `{member_name}`.")

                with source, open(output_path, "wb") as dst:
                    shutil.copyfileobj(source, dst)
                expected_size = member.size
        except (tarfile.TarError, EOFError) as exc:
            raise ExtractionError(f"Invalid archive: {archive_path}") from exc
        except OSError as exc:
            raise ExtractionError(f"Could not extract `{member_name}`: {exc}") from exc

        actual_size = os.path.getsize(output_path)
        if actual_size != expected_size or actual_size == 0:
            raise ExtractionError(
                f"Extracted `{member_name}` has {actual_size} bytes, expected {expected_size}."
            )
        return output_path

    def safe_extract_tar(self, archive_path: str, destination_dir: str) -> List[str]:
        base = Path(destination_dir).resolve()
        extracted: List[str] = []

        try:
            with tarfile.open(archive_path, "r:*") as archive:
                members = archive.getmembers()
                for member in members:
                    self._check_member(member, base)

                for member in members:
                    target_path = (base / member.name).resolve()

                    if member.isdir():
                        target_path.mkdir(parents=True, exist_ok=True)
                        continue

                    target_path.parent.mkdir(parents=True, exist_ok=True)
                    source = archive.extractfile(member)
                    if source is None:
                        continue
                    with source, open(target_path, "wb") as dst:
                        shutil.copyfileobj(source, dst)
                    os.chmod(target_path, member.mode & 0o777)
                    extracted.append(str(target_path))
        except (tarfile.TarError, EOFError) as exc:
            raise ExtractionError(f"Invalid archive: {archive_path}") from exc

        return extracted
