import pytest

from observatorydeploy.errors import ResolutionError
from observatorydeploy.services.registry import GitHubReleaseRegistry


class RequestException(Exception):
    pass


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.body = body

    def json(self):
        if isinstance(self.body, Exception):
            raise self.body
        return self.body


class FakeRequestsModule:
    RequestException = RequestException

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append((url, headers))
        if self.error:
            raise self.error
        return self.response


RELEASE = {
    "tag_name": "v1.2.3",
    "assets": [
        {
            "name": "observatory-x86_64-unknown-linux-gnu.tar.gz",
            "url": "https://api.github.com/repos/o/r/releases/assets/7",
            "browser_download_url": "https://github.com/o/r/releases/download/v1.2.3/a.tar.gz",
            "size": 1024,
        },
        {"name": "broken-entry"},
    ],
}


def test_list_assets_queries_tag_endpoint_with_bearer_token():
    requests_module = FakeRequestsModule(FakeResponse(body=RELEASE))
    registry = GitHubReleaseRegistry(token="secret", requests_module=requests_module)

    assets = registry.list_assets("o/r", "v1.2.3")

    url, headers = requests_module.calls[0]
    assert url == "https://api.github.com/repos/o/r/releases/tags/v1.2.3"
    assert headers["Authorization"] == "Bearer secret"
    assert headers["Accept"] == "application/vnd.github+json"
    assert len(assets) == 1
    assert assets[0].size == 1024
    assert assets[0].download_ref.endswith("/assets/7")


def test_list_latest_assets_works_anonymously():
    requests_module = FakeRequestsModule(FakeResponse(body=RELEASE))
    registry = GitHubReleaseRegistry(requests_module=requests_module)

    registry.list_latest_assets("o/r")

    url, headers = requests_module.calls[0]
    assert url.endswith("/repos/o/r/releases/latest")
    assert "Authorization" not in headers


def test_missing_tag_raises_resolution_error():
    registry = GitHubReleaseRegistry(requests_module=FakeRequestsModule(FakeResponse(status_code=404)))

    with pytest.raises(ResolutionError, match="was not found"):
        registry.list_assets("o/r", "v9.9.9")


def test_transport_error_raises_resolution_error():
    registry = GitHubReleaseRegistry(requests_module=FakeRequestsModule(error=RequestException("offline")))

    with pytest.raises(ResolutionError, match="offline"):
        registry.list_assets("o/r", "v1.2.3")


def test_invalid_json_raises_resolution_error():
    registry = GitHubReleaseRegistry(
        requests_module=FakeRequestsModule(FakeResponse(body=ValueError("bad json")))
    )

    with pytest.raises(ResolutionError, match="not valid JSON"):
        registry.list_assets("o/r", "v1.2.3")
