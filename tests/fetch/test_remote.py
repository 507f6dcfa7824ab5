import hashlib
import socket
from pathlib import Path

import paramiko
import pytest

import kube_config_updater.utils.ssh as ssh_mod
from kube_config_updater.fetch.remote import (
    FetchedDocument,
    FetchError,
    FetchErrorKind,
    RemoteFetcher,
)
from kube_config_updater.utils.ssh import AuthMethod, select_auth

# ----------------- Fakes for Paramiko -----------------

class _FakeChannel:
    def __init__(self, log, rc=0):
        self.log = log
        self._rc = rc
    def recv_exit_status(self): return self._rc
    def shutdown_write(self): self.log.append(("shutdown_write",))

class _Buf:
    def __init__(self, data=b""): self._data = data
    def read(self): return self._data

class _FakeStdin:
    def __init__(self, log):
        self.log = log
        self.channel = _FakeChannel(log)
    def write(self, data): self.log.append(("stdin", data))
    def flush(self): pass

class FakeSSHClient:
    def __init__(self, log, *, out=b"", err=b"", rc=0, connect_exc=None):
        self.log = log
        self._out, self._err, self._rc = out, err, rc
        self._connect_exc = connect_exc
    def load_system_host_keys(self): pass
    def set_missing_host_key_policy(self, policy): pass
    def connect(self, **kw):
        self.log.append(("connect", kw))
        if self._connect_exc is not None:
            raise self._connect_exc
    def exec_command(self, cmd, timeout=None):
        self.log.append(("exec", cmd))
        stdout = _Buf(self._out)
        stdout.channel = _FakeChannel(self.log, self._rc)
        return _FakeStdin(self.log), stdout, _Buf(self._err)
    def close(self):
        self.log.append(("close",))


@pytest.fixture
def fake_ssh(monkeypatch):
    """Patch paramiko.SSHClient as seen by utils.ssh; returns (log, configure)."""
    ops_log = []
    options = {}

    def _factory():
        return FakeSSHClient(ops_log, **options)

    monkeypatch.setattr(ssh_mod.paramiko, "SSHClient", _factory)

    def configure(**kw):
        options.update(kw)

    return ops_log, configure


def _connect_kwargs(ops_log):
    return next(entry[1] for entry in ops_log if entry[0] == "connect")


def _commands(ops_log):
    return [entry[1] for entry in ops_log if entry[0] == "exec"]

# ----------------- Tests -----------------

def test_auth_selection_order(host_spec, tmp_path: Path):
    assert select_auth(host_spec(identity_file=tmp_path / "id"), "pw") is AuthMethod.KEY
    assert select_auth(host_spec(), "pw") is AuthMethod.PASSWORD
    assert select_auth(host_spec(), None) is AuthMethod.AGENT
    assert select_auth(host_spec(), "") is AuthMethod.AGENT


def test_password_fetch_uses_sudo_with_password_on_stdin(fake_ssh, host_spec):
    ops_log, configure = fake_ssh
    configure(out=b"apiVersion: v1\n", err=b"[sudo] password for admin: ")

    result = RemoteFetcher().fetch(host_spec(), "s3cret")

    assert isinstance(result, FetchedDocument)
    assert result.raw == b"apiVersion: v1\n"
    assert result.sha256 == hashlib.sha256(b"apiVersion: v1\n").hexdigest()

    kw = _connect_kwargs(ops_log)
    assert kw["hostname"] == "prod-k3s.example.com"
    assert kw["username"] == "admin"
    assert kw["password"] == "s3cret"
    assert kw["allow_agent"] is False
    assert kw["look_for_keys"] is False

    cmds = _commands(ops_log)
    assert cmds == ["sudo -S cat /etc/rancher/k3s/k3s.yaml"]
    assert all("s3cret" not in c for c in cmds)
    assert ("stdin", "s3cret\n") in ops_log
    assert ("shutdown_write",) in ops_log
    assert ops_log[-1] == ("close",)


def test_identity_file_uses_key_without_sudo(fake_ssh, monkeypatch, host_spec, tmp_path: Path):
    ops_log, configure = fake_ssh
    configure(out=b"kind: Config\n")
    monkeypatch.setattr(ssh_mod, "load_private_key", lambda path: "PKEY")

    result = RemoteFetcher().fetch(host_spec(identity_file=tmp_path / "id_ed25519"), "ignored")

    assert isinstance(result, FetchedDocument)
    kw = _connect_kwargs(ops_log)
    assert kw["pkey"] == "PKEY"
    assert "password" not in kw
    assert kw["allow_agent"] is False
    assert _commands(ops_log) == ["cat /etc/rancher/k3s/k3s.yaml"]
    assert not [e for e in ops_log if e[0] == "stdin"]


def test_no_password_falls_back_to_agent(fake_ssh, host_spec):
    ops_log, configure = fake_ssh
    configure(out=b"kind: Config\n")

    result = RemoteFetcher().fetch(host_spec(), None)

    assert isinstance(result, FetchedDocument)
    kw = _connect_kwargs(ops_log)
    assert kw["allow_agent"] is True
    assert "password" not in kw
    assert _commands(ops_log) == ["cat /etc/rancher/k3s/k3s.yaml"]


def test_remote_path_is_shell_quoted(fake_ssh, host_spec):
    ops_log, configure = fake_ssh
    configure(out=b"x")

    RemoteFetcher().fetch(host_spec(remote_path="/srv/my configs/k3s.yaml"), None)

    assert _commands(ops_log) == ["cat '/srv/my configs/k3s.yaml'"]


def test_rejected_password_is_auth_error(fake_ssh, host_spec):
    ops_log, configure = fake_ssh
    configure(connect_exc=paramiko.AuthenticationException("Authentication failed."))

    result = RemoteFetcher().fetch(host_spec(), "wrong")

    assert isinstance(result, FetchError)
    assert result.kind is FetchErrorKind.AUTH
    assert result.auth_rejected
    assert "wrong" not in str(result)
    assert ("close",) in ops_log


def test_unreachable_host_is_transport_error(fake_ssh, host_spec):
    _, configure = fake_ssh
    configure(connect_exc=socket.timeout("timed out"))

    result = RemoteFetcher().fetch(host_spec(), "pw")

    assert isinstance(result, FetchError)
    assert result.kind is FetchErrorKind.TRANSPORT
    assert not result.auth_rejected
    assert str(result).startswith("[prod-k3s] Connection to prod-k3s.example.com:22 failed")


def test_ssh_protocol_error_is_transport_error(fake_ssh, host_spec):
    _, configure = fake_ssh
    configure(connect_exc=paramiko.SSHException("Error reading SSH protocol banner"))

    result = RemoteFetcher().fetch(host_spec(), "pw")

    assert result.kind is FetchErrorKind.TRANSPORT


def test_agent_without_keys_is_auth_error(fake_ssh, host_spec):
    _, configure = fake_ssh
    configure(connect_exc=paramiko.SSHException("No authentication methods available"))

    result = RemoteFetcher().fetch(host_spec(), None)

    assert result.kind is FetchErrorKind.AUTH


def test_nonzero_exit_is_remote_command_error(fake_ssh, host_spec):
    _, configure = fake_ssh
    configure(rc=1, err=b"[sudo] password for admin: cat: /etc/rancher/k3s/k3s.yaml: No such file or directory\n")

    result = RemoteFetcher().fetch(host_spec(), "pw")

    assert isinstance(result, FetchError)
    assert result.kind is FetchErrorKind.REMOTE_COMMAND
    assert "exit code 1" in result.cause
    assert "No such file or directory" in result.cause


def test_sudo_refusing_password_is_auth_error(fake_ssh, host_spec):
    _, configure = fake_ssh
    configure(rc=1, err=b"[sudo] password for admin: \nSorry, try again.\nsudo: 1 incorrect password attempt\n")

    result = RemoteFetcher().fetch(host_spec(), "pw")

    assert result.kind is FetchErrorKind.AUTH
    assert result.auth_rejected


def test_stderr_alone_is_not_a_failure(fake_ssh, host_spec):
    _, configure = fake_ssh
    configure(out=b"kind: Config\n", err=b"warning: something noisy\n", rc=0)

    result = RemoteFetcher().fetch(host_spec(), None)

    assert isinstance(result, FetchedDocument)


def test_unreadable_key_file_is_auth_error(fake_ssh, host_spec, tmp_path: Path):
    ops_log, _ = fake_ssh

    result = RemoteFetcher().fetch(host_spec(identity_file=tmp_path / "missing_key"), None)

    assert isinstance(result, FetchError)
    assert result.kind is FetchErrorKind.AUTH
    assert "Cannot read private key" in result.cause
    assert not [e for e in ops_log if e[0] == "connect"]
