import io
import tarfile

from observatorydeploy.installer import Installer
from observatorydeploy.models import Asset


class FakeRegistry:
    def __init__(self, assets):
        self.assets = assets

    def list_latest_assets(self, repository):
        return self.assets


class FakeFetcher:
    def __init__(self, payload):
        self.payload = payload
        self.calls = []

    def fetch(self, ref, dest_path, token=None, description=None):
        self.calls.append((ref, token))
        with open(dest_path, "wb") as file_obj:
            file_obj.write(self.payload)


def _tar_bytes(entries):
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
        for name, payload in entries.items():
            info = tarfile.TarInfo(name)
            info.size = len(payload)
            info.mode = 0o755
            archive.addfile(info, io.BytesIO(payload))
    return buffer.getvalue()


def test_install_extracts_latest_matching_asset(tmp_path):
    registry = FakeRegistry(
        [
            Asset(name="observatory-aarch64-apple-darwin.tar.gz", download_ref="api/1"),
            Asset(
                name="observatory-x86_64-unknown-linux-gnu.tar.gz",
                download_ref="api/2",
                content_ref="https://github.com/TicClick/observatory/releases/download/v1/linux.tar.gz",
            ),
        ]
    )
    fetcher = FakeFetcher(_tar_bytes({"observatory": b"binary"}))

    installer = Installer(destination=str(tmp_path), registry=registry, fetcher=fetcher)

    assert installer.run() == 0
    assert (tmp_path / "observatory").read_bytes() == b"binary"
    assert fetcher.calls == [
        ("https://github.com/TicClick/observatory/releases/download/v1/linux.tar.gz", None)
    ]


def test_install_without_matching_asset_writes_nothing(tmp_path):
    registry = FakeRegistry([Asset(name="observatory-aarch64-apple-darwin.tar.gz", download_ref="api/1")])
    fetcher = FakeFetcher(b"")
    destination = tmp_path / "bin"

    installer = Installer(destination=str(destination), registry=registry, fetcher=fetcher)

    assert installer.run() == 1
    assert fetcher.calls == []
    assert not destination.exists()
