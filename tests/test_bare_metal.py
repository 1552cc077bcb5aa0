import io
import tarfile
from types import SimpleNamespace

from observatorydeploy.bare_metal import BareMetalDeployer
from observatorydeploy.errors import DeployError, RestartError, VerificationError
from observatorydeploy.models import Asset, DeployStage, LifecycleState
from observatorydeploy.services.config_loader import BareMetalConfig

ASSET_NAME = "observatory-x86_64-unknown-linux-gnu.tar.gz"


def _tar_bytes(entries):
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
        for name, payload in entries.items():
            info = tarfile.TarInfo(name)
            info.size = len(payload)
            info.mode = 0o755
            archive.addfile(info, io.BytesIO(payload))
    return buffer.getvalue()


class FakeRegistry:
    def __init__(self, assets):
        self.assets = assets
        self.queries = []

    def list_assets(self, repository, tag):
        self.queries.append((repository, tag))
        return self.assets


class FakeFetcher:
    def __init__(self, payload):
        self.payload = payload
        self.calls = []

    def fetch(self, ref, dest_path, token=None, description=None):
        self.calls.append((ref, dest_path, token))
        with open(dest_path, "wb") as file_obj:
            file_obj.write(self.payload)


class FakeSupervisor:
    def __init__(self, states=None, restart_errors=None):
        self.states = list(states or [])
        self.restart_errors = list(restart_errors or [])
        self.restarts = []

    def status(self, name):
        if self.states:
            return self.states.pop(0)
        return LifecycleState.RUNNING

    def restart(self, name):
        self.restarts.append(name)
        if self.restart_errors:
            error = self.restart_errors.pop(0)
            if error is not None:
                raise error


class FakeRunner:
    def __init__(self, stdout="observatory 1.2.2\n", error=None):
        self.stdout = stdout
        self.error = error
        self.calls = []

    def run(self, cmd, **kwargs):
        self.calls.append(cmd)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(returncode=0, stdout=self.stdout, stderr="")


def _config(tmp_path, **overrides):
    values = {
        "token": "secret",
        "repository": "TicClick/observatory",
        "tag": "v1.2.3",
        "binary_path": str(tmp_path / "observatory"),
        "verify_attempts": 1,
        "verify_interval": 0.0,
    }
    values.update(overrides)
    return BareMetalConfig(**values)


def _deployer(tmp_path, supervisor=None, assets=None, runner=None, payload=None, **overrides):
    (tmp_path / "observatory").write_bytes(b"old-binary")
    if assets is None:
        assets = [Asset(name=ASSET_NAME, download_ref="https://api.github.com/assets/1")]
    registry = FakeRegistry(assets)
    fetcher = FakeFetcher(payload or _tar_bytes({"observatory": b"new-binary"}))
    deployer = BareMetalDeployer(
        _config(tmp_path, **overrides),
        registry=registry,
        fetcher=fetcher,
        supervisor=supervisor or FakeSupervisor(),
        command_runner=runner or FakeRunner(),
    )
    return deployer, registry, fetcher


def test_deploy_replaces_binary_and_restarts_service(tmp_path):
    supervisor = FakeSupervisor()
    deployer, registry, fetcher = _deployer(tmp_path, supervisor=supervisor)

    assert deployer.run() == 0

    assert (tmp_path / "observatory").read_bytes() == b"new-binary"
    assert not (tmp_path / ASSET_NAME).exists()
    assert not (tmp_path / ".observatory-deploy.lock").exists()
    assert registry.queries == [("TicClick/observatory", "v1.2.3")]
    assert fetcher.calls == [
        ("https://api.github.com/assets/1", str(tmp_path / ASSET_NAME), "secret")
    ]
    assert supervisor.restarts == ["observatory"]
    assert deployer.attempt.succeeded
    assert deployer.attempt.history == [
        DeployStage.PRE_CHECKED,
        DeployStage.FETCHED,
        DeployStage.EXTRACTED,
        DeployStage.RESTARTED,
        DeployStage.VERIFIED,
    ]


def test_missing_asset_aborts_before_any_transfer(tmp_path):
    supervisor = FakeSupervisor()
    deployer, _registry, fetcher = _deployer(
        tmp_path,
        supervisor=supervisor,
        assets=[Asset(name="observatory-aarch64-apple-darwin.tar.gz", download_ref="x")],
    )

    assert deployer.run() == 1

    assert fetcher.calls == []
    assert supervisor.restarts == []
    assert (tmp_path / "observatory").read_bytes() == b"old-binary"
    assert deployer.attempt.failed_stage == DeployStage.FETCHED
    assert "No asset matching" in deployer.attempt.error


def test_unhealthy_service_blocks_deploy(tmp_path):
    supervisor = FakeSupervisor([LifecycleState.FAILED])
    deployer, _registry, fetcher = _deployer(tmp_path, supervisor=supervisor)

    assert deployer.run() == 1

    assert fetcher.calls == []
    assert deployer.attempt.failed_stage == DeployStage.PRE_CHECKED


def test_broken_live_binary_blocks_deploy(tmp_path):
    runner = FakeRunner(error=VerificationError("Command failed: observatory --version"))
    deployer, _registry, fetcher = _deployer(tmp_path, runner=runner)

    assert deployer.run() == 1

    assert fetcher.calls == []
    assert deployer.attempt.failed_stage == DeployStage.PRE_CHECKED


def test_archive_without_binary_leaves_live_binary_untouched(tmp_path):
    deployer, _registry, _fetcher = _deployer(tmp_path, payload=_tar_bytes({"README.md": b"docs"}))

    assert deployer.run() == 1

    assert (tmp_path / "observatory").read_bytes() == b"old-binary"
    assert deployer.attempt.failed_stage == DeployStage.EXTRACTED


def test_failed_verification_rolls_back_to_previous_binary(tmp_path):
    supervisor = FakeSupervisor(
        [LifecycleState.RUNNING, LifecycleState.FAILED, LifecycleState.RUNNING]
    )
    deployer, _registry, _fetcher = _deployer(tmp_path, supervisor=supervisor)

    assert deployer.run() == 1

    assert (tmp_path / "observatory").read_bytes() == b"old-binary"
    assert supervisor.restarts == ["observatory", "observatory"]
    assert deployer.attempt.failed_stage == DeployStage.VERIFIED
    assert deployer.attempt.rolled_back is True


def test_rollback_can_be_disabled(tmp_path):
    supervisor = FakeSupervisor([LifecycleState.RUNNING, LifecycleState.FAILED])
    deployer, _registry, _fetcher = _deployer(tmp_path, supervisor=supervisor, rollback=False)

    assert deployer.run() == 1

    assert (tmp_path / "observatory").read_bytes() == b"new-binary"
    assert supervisor.restarts == ["observatory"]
    assert deployer.attempt.rolled_back is False


def test_concurrent_deploy_on_same_target_is_refused(tmp_path):
    (tmp_path / ".observatory-deploy.lock").write_text("1234\n", encoding="utf-8")
    deployer, registry, fetcher = _deployer(tmp_path)

    assert deployer.run() == 1

    assert registry.queries == []
    assert fetcher.calls == []
    assert (tmp_path / ".observatory-deploy.lock").exists()


def test_unknown_service_state_blocks_deploy(tmp_path):
    class UnreachableSupervisor(FakeSupervisor):
        def status(self, name):
            raise DeployError("Failed to connect to bus: No medium found")

    supervisor = UnreachableSupervisor()
    deployer, _registry, fetcher = _deployer(tmp_path, supervisor=supervisor)

    assert deployer.run() == 1

    assert fetcher.calls == []
    assert supervisor.restarts == []
    assert deployer.attempt.failed_stage == DeployStage.PRE_CHECKED
    assert "status: unknown" in deployer.attempt.error


def test_failed_restart_rolls_back_to_previous_binary(tmp_path):
    supervisor = FakeSupervisor(
        restart_errors=[RestartError("Job for observatory.service failed."), None]
    )
    deployer, _registry, _fetcher = _deployer(tmp_path, supervisor=supervisor)

    assert deployer.run() == 1

    assert (tmp_path / "observatory").read_bytes() == b"old-binary"
    assert supervisor.restarts == ["observatory", "observatory"]
    assert deployer.attempt.failed_stage == DeployStage.RESTARTED
    assert deployer.attempt.rolled_back is True


def test_failed_restart_after_rollback_is_reported(tmp_path):
    supervisor = FakeSupervisor(
        restart_errors=[RestartError("restart failed"), RestartError("restart failed again")]
    )
    deployer, _registry, _fetcher = _deployer(tmp_path, supervisor=supervisor)

    assert deployer.run() == 1

    assert (tmp_path / "observatory").read_bytes() == b"old-binary"
    assert deployer.attempt.rolled_back is False
