import pytest

from observatorydeploy.errors import DeployError
from observatorydeploy.services.lock import DeployLock


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


def test_second_lock_on_same_target_fails_fast(tmp_path):
    lock_path = str(tmp_path / ".observatory-deploy.lock")

    with DeployLock(lock_path, DummyLogger()):
        with pytest.raises(DeployError, match="Another deployment holds the lock"):
            DeployLock(lock_path, DummyLogger()).acquire()

    assert not (tmp_path / ".observatory-deploy.lock").exists()


def test_lock_can_be_reacquired_after_release(tmp_path):
    lock = DeployLock(str(tmp_path / "deploy.lock"), DummyLogger())

    lock.acquire()
    lock.release()
    lock.acquire()

    assert lock.acquired
    lock.release()


def test_lock_under_a_regular_file_raises_deploy_error(tmp_path):
    blocker = tmp_path / "project"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(DeployError, match="Could not create lock directory"):
        DeployLock(str(blocker / ".observatory-deploy.lock"), DummyLogger()).acquire()
