"""SSH command execution and SFTP upload on provisioned instances."""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Callable, Union

import paramiko

from .config import ProvisionConfig
from .results import LaunchedInstance

logger = logging.getLogger(__name__)

REMOTE_SCRIPT_PATH = "/tmp/bootstrap.sh"
REMOTE_INDEX_PATH = "/tmp/index.html"
WEB_ROOT = "/var/www/html"


@dataclass
class CommandResult:
    command: str
    exit_status: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


class RemoteShell:
    """Thin wrapper over a connected :class:`paramiko.SSHClient`."""

    def __init__(self, client: paramiko.SSHClient, host: str) -> None:
        self._client = client
        self.host = host

    def run(self, command: str) -> CommandResult:
        """Run *command* and block until it exits."""

        logger.debug("[%s] $ %s", self.host, command)
        _, stdout, stderr = self._client.exec_command(command)
        # drain output first; a full channel window blocks the exit status
        out = stdout.read().decode(errors="replace")
        err = stderr.read().decode(errors="replace")
        exit_status = stdout.channel.recv_exit_status()
        result = CommandResult(command=command, exit_status=exit_status, stdout=out, stderr=err)
        if not result.ok:
            logger.debug("[%s] exit %d: %s", self.host, exit_status, result.stderr.strip())
        return result

    def upload(self, content: Union[str, bytes], remote_path: str, mode: int = 0o644) -> None:
        """Write *content* to *remote_path* over SFTP."""

        data = content.encode() if isinstance(content, str) else content
        sftp = self._client.open_sftp()
        try:
            sftp.putfo(io.BytesIO(data), remote_path)
            sftp.chmod(remote_path, mode)
        finally:
            sftp.close()
        logger.debug("[%s] uploaded %d bytes to %s", self.host, len(data), remote_path)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "RemoteShell":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


ShellFactory = Callable[[LaunchedInstance, ProvisionConfig], RemoteShell]


def connect_shell(instance: LaunchedInstance, config: ProvisionConfig) -> RemoteShell:
    """Open an SSH session to *instance* using the run's key pair."""

    if not instance.public_ip:
        raise paramiko.SSHException(f"Instance {instance.name} has no public IP address")

    client = paramiko.SSHClient()
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    logger.info("Connecting to %s (%s) as %s", instance.name, instance.public_ip, instance.ssh_user)
    client.connect(
        instance.public_ip,
        username=instance.ssh_user,
        key_filename=config.key_path,
        timeout=config.ssh_timeout,
        banner_timeout=config.ssh_timeout,
        auth_timeout=config.ssh_timeout,
    )
    return RemoteShell(client, instance.public_ip)


def bootstrap_script(package_manager: str) -> str:
    """Return the bootstrap shell script for a package manager."""

    if package_manager == "apt":
        refresh = "apt-get update -y"
    else:
        refresh = "yum makecache -y"
    return (
        "#!/bin/bash\n"
        "set -e\n"
        f"{refresh}\n"
        'echo "Hostname: $(hostname)"\n'
        'echo "Kernel: $(uname -r)"\n'
        "cat /etc/os-release | head -n 2\n"
    )


def web_server_commands(package_manager: str) -> list[str]:
    """Install, enable and start Apache for the given package manager."""

    if package_manager == "apt":
        return [
            "sudo apt-get install -y apache2",
            "sudo systemctl enable apache2",
            "sudo systemctl start apache2",
        ]
    return [
        "sudo yum install -y httpd",
        "sudo systemctl enable httpd",
        "sudo systemctl start httpd",
    ]


def index_page(instance_name: str, environment: str) -> str:
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        f"<head><title>{instance_name}</title></head>\n"
        f"<body><h1>Hello from {instance_name}</h1>"
        f"<p>Environment: {environment}</p></body>\n"
        "</html>\n"
    )


__all__ = [
    "CommandResult",
    "REMOTE_INDEX_PATH",
    "REMOTE_SCRIPT_PATH",
    "RemoteShell",
    "ShellFactory",
    "WEB_ROOT",
    "bootstrap_script",
    "connect_shell",
    "index_page",
    "web_server_commands",
]
