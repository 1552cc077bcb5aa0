import os

import pytest
from rich.console import Console

from observatorydeploy.errors import DeployError
from observatorydeploy.services.filesystem import FileSystemService


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


def _service():
    return FileSystemService(logger=DummyLogger(), console=Console(record=True))


def test_install_binary_keeps_previous_and_replaces_live(tmp_path):
    live = tmp_path / "observatory"
    live.write_bytes(b"old")
    staged = tmp_path / "observatory.staging"
    staged.write_bytes(b"new")

    previous = _service().install_binary(str(staged), str(live))

    assert previous == f"{live}.previous"
    assert live.read_bytes() == b"new"
    assert (tmp_path / "observatory.previous").read_bytes() == b"old"
    assert not staged.exists()
    assert os.access(live, os.X_OK)


def test_install_binary_without_live_binary_returns_none(tmp_path):
    staged = tmp_path / "observatory.staging"
    staged.write_bytes(b"new")

    assert _service().install_binary(str(staged), str(tmp_path / "observatory")) is None


def test_restore_binary_puts_previous_back(tmp_path):
    live = tmp_path / "observatory"
    live.write_bytes(b"broken")
    previous = tmp_path / "observatory.previous"
    previous.write_bytes(b"good")

    _service().restore_binary(str(previous), str(live))

    assert live.read_bytes() == b"good"


def test_restore_binary_requires_previous_copy(tmp_path):
    with pytest.raises(DeployError, match="No previous binary"):
        _service().restore_binary(str(tmp_path / "missing"), str(tmp_path / "observatory"))
