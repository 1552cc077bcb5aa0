import logging
import os
from pathlib import Path

import click
from rich.logging import RichHandler

from .bare_metal import BareMetalDeployer
from .constants import APP_NAME, DEFAULT_INSTALL_REPOSITORY, DEFAULT_INSTALL_SUFFIX
from .container import ContainerDeployer
from .core import console
from .errors import DeployError
from .installer import Installer
from .services.command_runner import CommandRunner
from .services.config_loader import ConfigLoader, build_bare_metal_config, build_container_config
from .services.supervisor import SystemdSupervisor
from .services.units import UnitGenerator

DEFAULT_CONFIG_FILE = ".observatory-deploy.yml"


def _resolve_option(cli_value, config, key, default=None, env=None):
    if cli_value is not None:
        return cli_value
    if env and os.environ.get(env):
        return os.environ[env]
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


def _configure_logging(verbose: bool, log_file):
    logger = logging.getLogger("observatorydeploy")
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)


def _shared_deploy_options(command):
    options = [
        click.option("--token", required=False, help="GitHub token (env: GITHUB_TOKEN)."),
        click.option("--service", required=False, help=f"Managed service name (default: {APP_NAME})."),
        click.option(
            "--verify-attempts",
            required=False,
            type=int,
            default=None,
            help="Health probes after cutover before giving up (default: 5).",
        ),
        click.option(
            "--verify-interval",
            required=False,
            type=float,
            default=None,
            help="Seconds between health probes (default: 2).",
        ),
        click.option(
            "--no-rollback",
            is_flag=True,
            default=None,
            help="Do not restore the previous artifact when the cutover fails.",
        ),
        click.option(
            "--timeout",
            required=False,
            type=float,
            default=None,
            help="Timeout in seconds for each HTTP request and external command (default: none).",
        ),
    ]
    for option in reversed(options):
        command = option(command)
    return command


@click.group()
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.pass_context
def main(ctx, verbose, log_file, config):
    """Deploy observatory releases to a supervised host or a compose project."""
    try:
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = ConfigLoader().load(resolved_config)
    except DeployError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    _configure_logging(verbose, log_file)

    ctx.obj = config_values


def _common_values(config_values, token, service, verify_attempts, verify_interval, no_rollback, timeout):
    return {
        "token": _resolve_option(token, config_values, "token", env="GITHUB_TOKEN"),
        "service": _resolve_option(service, config_values, "service"),
        "verify_attempts": _resolve_option(verify_attempts, config_values, "verify_attempts"),
        "verify_interval": _resolve_option(verify_interval, config_values, "verify_interval"),
        "rollback": not no_rollback if no_rollback is not None else config_values.get("rollback", True),
        "timeout": _resolve_option(timeout, config_values, "timeout"),
    }


@main.command("bare-metal")
@click.option("--repo", required=False, help="Repository as owner/name (env: GITHUB_REPO).")
@click.option("--tag", required=False, help="Release tag to deploy (env: GITHUB_TAG).")
@click.option("--binary-path", required=False, type=click.Path(), help=f"Live binary (default: ./{APP_NAME}).")
@click.option("--asset-name", required=False, help="Release asset holding the binary.")
@click.option("--system", is_flag=True, default=None, help="Use the system-scope systemd manager.")
@click.option("--api-url", required=False, help="GitHub API base URL.")
@_shared_deploy_options
@click.pass_obj
def bare_metal(
    config_values,
    repo,
    tag,
    binary_path,
    asset_name,
    system,
    api_url,
    token,
    service,
    verify_attempts,
    verify_interval,
    no_rollback,
    timeout,
):
    """Replace the supervised binary with a release build and restart it."""
    values = _common_values(
        config_values, token, service, verify_attempts, verify_interval, no_rollback, timeout
    )
    values.update(
        {
            "repository": _resolve_option(repo, config_values, "repository", env="GITHUB_REPO"),
            "tag": _resolve_option(tag, config_values, "tag", env="GITHUB_TAG"),
            "binary_path": _resolve_option(binary_path, config_values, "binary_path"),
            "asset_name": _resolve_option(asset_name, config_values, "asset_name"),
            "system": _resolve_option(system, config_values, "system"),
            "api_url": _resolve_option(api_url, config_values, "api_url"),
        }
    )

    try:
        deployer = BareMetalDeployer(build_bare_metal_config(values))
    except DeployError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(deployer.run())


@main.command("container")
@click.option("--actor", required=False, help="Registry user (env: GITHUB_ACTOR).")
@click.option("--repo", required=False, help="Image repository as owner/name (env: REPO).")
@click.option("--image-tag", required=False, help="Image tag (env: IMAGE_TAG, default: latest).")
@click.option(
    "--project-dir",
    required=False,
    type=click.Path(),
    help=f"Compose project directory (env: PROJECT_DIR, default: ~/{APP_NAME}).",
)
@click.option("--registry", required=False, help="Image registry (default: ghcr.io).")
@_shared_deploy_options
@click.pass_obj
def container(
    config_values,
    actor,
    repo,
    image_tag,
    project_dir,
    registry,
    token,
    service,
    verify_attempts,
    verify_interval,
    no_rollback,
    timeout,
):
    """Pull a release image and bring the compose service up on it."""
    values = _common_values(
        config_values, token, service, verify_attempts, verify_interval, no_rollback, timeout
    )
    values.update(
        {
            "actor": _resolve_option(actor, config_values, "actor", env="GITHUB_ACTOR"),
            "repository": _resolve_option(repo, config_values, "repository", env="REPO"),
            "image_tag": _resolve_option(image_tag, config_values, "image_tag", env="IMAGE_TAG"),
            "project_dir": _resolve_option(project_dir, config_values, "project_dir", env="PROJECT_DIR"),
            "registry": _resolve_option(registry, config_values, "registry"),
        }
    )

    try:
        deployer = ContainerDeployer(build_container_config(values))
    except DeployError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(deployer.run())


@main.command("install")
@click.option("--repo", default=DEFAULT_INSTALL_REPOSITORY, show_default=True, help="Repository as owner/name.")
@click.option("--suffix", default=DEFAULT_INSTALL_SUFFIX, show_default=True, help="Asset name suffix.")
@click.option("--dest", required=False, type=click.Path(), help="Target directory (default: cwd).")
def install(repo, suffix, dest):
    """Download the latest release binary and unpack it."""
    raise SystemExit(Installer(repository=repo, suffix=suffix, destination=dest).run())


@main.command("setup-units")
@click.option("--binary-name", default=APP_NAME, show_default=True)
@click.option("--binary-dir", required=False, type=click.Path(), help="Directory of the binary (default: home).")
@click.option(
    "--unit-dir",
    required=False,
    type=click.Path(),
    help="Unit directory (default: ~/.config/systemd/user; use /etc/systemd/system for system scope).",
)
@click.option("--description", default="osu! wiki helper", show_default=True)
def setup_units(binary_name, binary_dir, unit_dir, description):
    """Write and register the systemd units of the bare-metal service."""
    unit_dir = os.path.abspath(os.path.expanduser(unit_dir or "~/.config/systemd/user"))
    binary_path = os.path.join(os.path.abspath(os.path.expanduser(binary_dir or str(Path.home()))), binary_name)

    logger = logging.getLogger("observatorydeploy")
    runner = CommandRunner(logger=logger)
    supervisor = SystemdSupervisor(runner.run, user_scope=UnitGenerator.is_user_scope(unit_dir))
    generator = UnitGenerator(supervisor=supervisor, logger=logger, console=console)

    try:
        generator.install(unit_dir, binary_name, binary_path, description)
    except DeployError as exc:
        raise click.ClickException(str(exc)) from exc


if __name__ == "__main__":
    main()
