# src/kube_config_updater/utils/ssh_runner.py

from __future__ import annotations

import shlex
from typing import Optional

import paramiko


class SSHRunner:
    def __init__(self, client: paramiko.SSHClient):
        self.client = client

    def run(
        self,
        cmd: str,
        *,
        sudo_password: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> tuple[int, bytes, str]:
        """
        Run *cmd* and return (exit status, raw stdout, stderr text).

        With sudo_password the command runs under `sudo -S`, which reads the
        password from stdin; it never appears on a command line or in the
        remote environment. sudo's prompt lands on stderr.
        """
        if sudo_password is not None:
            cmd = f"sudo -S {cmd}"

        stdin, stdout, stderr = self.client.exec_command(cmd, timeout=timeout)
        if sudo_password is not None:
            stdin.write(sudo_password + "\n")
            stdin.flush()
        stdin.channel.shutdown_write()

        out = stdout.read()
        err = stderr.read().decode("utf-8", errors="replace")
        rc = stdout.channel.recv_exit_status()
        return rc, out, err

    def read_file(
        self,
        remote_path: str,
        *,
        sudo_password: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> tuple[int, bytes, str]:
        return self.run(
            f"cat {shlex.quote(remote_path)}",
            sudo_password=sudo_password,
            timeout=timeout,
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "SSHRunner":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
