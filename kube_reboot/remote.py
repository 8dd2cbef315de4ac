"""Remote command execution over the system ssh client."""

import re
import shlex
import subprocess
from typing import Protocol

from kube_reboot.exceptions import TransportError
from kube_reboot.logging_config import get_logger

logger = get_logger(__name__)

REBOOT_PATTERN = re.compile(r"reboot", re.IGNORECASE)


def is_reboot_command(command: str) -> bool:
    """Whether the command is expected to drop the connection."""
    return REBOOT_PATTERN.search(command) is not None


class RemoteExec(Protocol):
    """Run a shell command on a remote host addressed as [user@]host."""

    def run(self, address: str, command: str) -> None: ...


class SSHRunner:
    """Runs commands through `ssh`.

    A reboot command usually kills the session before ssh can report success,
    so any failure of a command matching REBOOT_PATTERN is treated as sent.
    """

    def __init__(
        self,
        options: str = "",
        identity_file: str | None = None,
        timeout: float = 60,
        dry_run: bool = False,
    ):
        """Initialize the runner.

        Args:
            options: Extra ssh options, as a single shell-quoted string
            identity_file: Optional private key passed with -i
            timeout: Seconds to wait for the remote command
            dry_run: If True, log the command instead of running it
        """
        self.options = options
        self.identity_file = identity_file
        self.timeout = timeout
        self.dry_run = dry_run

    def build_command(self, address: str, command: str) -> list[str]:
        """Build the ssh argument vector."""
        argv = ["ssh", *shlex.split(self.options)]
        if self.identity_file:
            argv += ["-i", self.identity_file]
        argv += [address, command]
        return argv

    def run(self, address: str, command: str) -> None:
        """Run a command on the remote host.

        Raises:
            TransportError: If the command failed and is not a reboot command
        """
        argv = self.build_command(address, command)

        if self.dry_run:
            logger.info(f"DRY-RUN: would execute: {shlex.join(argv)}")
            return

        logger.info(f"Executing SSH command on {address}: {command}")
        reboot = is_reboot_command(command)

        try:
            result = subprocess.run(argv, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            if reboot:
                logger.info(f"SSH reboot command sent to {address} (session hung up)")
                return
            raise TransportError(
                f"SSH command timed out on {address}",
                f"'{command}' did not finish within {self.timeout:g} seconds",
            )
        except FileNotFoundError:
            raise TransportError(
                "ssh is not installed or not in PATH",
                "Install an OpenSSH client or ensure the 'ssh' command is in your PATH",
            )

        if result.returncode != 0:
            if reboot:
                # Connection loss is the expected result of a reboot
                logger.info(
                    f"SSH reboot command sent to {address} (exit code {result.returncode})"
                )
                return
            raise TransportError(
                f"SSH command failed on {address} with exit code {result.returncode}",
                result.stderr.strip() or None,
            )

        logger.info(f"SSH command completed successfully on {address}")
