"""Shared constants for observatory-deploy."""

APP_NAME = "observatory"
PLATFORM_TRIPLE = "x86_64-unknown-linux-gnu"
DEFAULT_ASSET_NAME = f"{APP_NAME}-{PLATFORM_TRIPLE}.tar.gz"
DEFAULT_INSTALL_SUFFIX = "linux-gnu.tar.gz"
DEFAULT_INSTALL_REPOSITORY = "TicClick/observatory"

GITHUB_API_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
METADATA_ACCEPT = "application/vnd.github+json"
CONTENT_ACCEPT = "application/octet-stream"
CHUNK_SIZE = 8192

DEFAULT_REGISTRY = "ghcr.io"
DEFAULT_IMAGE_TAG = "latest"
DEFAULT_PORT_BINDING = "127.0.0.1:3000:3000"
CONTAINER_CONFIG_DIR = "/app/config"
CONTAINER_CONFIG_FILE = "config.yaml"
COMPOSE_FILE = "docker-compose.yaml"
COMPOSE_OVERRIDE_FILE = "docker-compose.override.yaml"
REPORT_LOG_LINES = 30

DEFAULT_VERIFY_ATTEMPTS = 5
DEFAULT_VERIFY_INTERVAL = 2.0
UNIT_RESTART_SEC = "15s"

LOCK_FILE_NAME = ".observatory-deploy.lock"
PREVIOUS_SUFFIX = ".previous"
STAGING_SUFFIX = ".staging"
BINARY_MODE = 0o755
