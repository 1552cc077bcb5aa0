"""systemd unit generation for the bare-metal service."""

import os
from pathlib import Path
from typing import List

from observatorydeploy.constants import UNIT_RESTART_SEC
from observatorydeploy.errors import DeployError


class UnitGenerator:
    """Writes the `.path` watcher and `.service` units and registers them."""

    def __init__(self, supervisor, logger, console):
        self.supervisor = supervisor
        self.logger = logger
        self.console = console

    @staticmethod
    def is_user_scope(unit_dir: str) -> bool:
        home = str(Path.home())
        return os.path.abspath(unit_dir).startswith(home)

    def render_path_unit(self, binary_name: str, binary_path: str) -> str:
        return f"""
[Unit]
Description=Monitor the {binary_name} binary for changes

[Path]
PathChanged={binary_path}
Unit={binary_name}.service

[Install]
WantedBy=default.target
""".lstrip()

    def render_service_unit(self, binary_name: str, binary_path: str, description: str) -> str:
        working_dir = os.path.dirname(binary_path)
        return f"""
[Unit]
Description={description}
Wants=network.target

[Service]
Type=simple
ExecStart={binary_path}
WorkingDirectory={working_dir}
Restart=always
RestartSec={UNIT_RESTART_SEC}

[Install]
WantedBy=default.target
""".lstrip()

    def write_units(self, unit_dir: str, binary_name: str, binary_path: str, description: str) -> List[str]:
        try:
            os.makedirs(unit_dir, exist_ok=True)
        except OSError as exc:
            raise DeployError(f"Could not create {unit_dir}: {exc}") from exc
        units = {
            f"{binary_name}.path": self.render_path_unit(binary_name, binary_path),
            f"{binary_name}.service": self.render_service_unit(binary_name, binary_path, description),
        }
        for unit_name, content in units.items():
            unit_path = os.path.join(unit_dir, unit_name)
            try:
                with open(unit_path, "w", encoding="utf-8", newline="\n") as file_obj:
                    file_obj.write(content)
            except OSError as exc:
                raise DeployError(f"Could not write unit {unit_path}: {exc}") from exc
            self.logger.info("Wrote %s", unit_path)
        return list(units)

    def install(self, unit_dir: str, binary_name: str, binary_path: str, description: str) -> List[str]:
        if self.supervisor.user_scope:
            self.supervisor.ensure_available()

        unit_names = self.write_units(unit_dir, binary_name, binary_path, description)
        self.supervisor.daemon_reload()
        self.supervisor.enable(unit_names)
        self.supervisor.start(unit_names)
        self.console.print(f"[green]Enabled and started {', '.join(unit_names)}.[/green]")
        return unit_names
