import os
import pathlib
import shutil
import subprocess
import typing

import attr
import click.testing
import pytest

import sops_gitops.cli

from .mocks import FakeCommands


@pytest.fixture()
def commands(monkeypatch) -> FakeCommands:
    fake = FakeCommands()
    monkeypatch.setattr(subprocess, 'run', fake)
    return fake


@pytest.fixture()
def workspace(tmp_path) -> pathlib.Path:
    directory = tmp_path / 'workspace'
    directory.mkdir()
    return directory


def cli(workspace: pathlib.Path):
    def invoke_func(arguments: typing.Sequence[str], exit_code: int = 0):
        assert all(isinstance(arg, str) for arg in arguments)
        runner = click.testing.CliRunner()
        result = runner.invoke(sops_gitops.cli.main, ['-p', str(workspace), *arguments])
        if result.exit_code != exit_code:
            message = f"Command sops-gitops {' '.join(arguments)} exited with {result.exit_code}"
            raise Exception(message) from result.exception
        return result

    return invoke_func


@pytest.fixture()
def invoke(workspace, commands):
    return cli(workspace)


@pytest.fixture()
def invoke_gpg(workspace):
    """Invoke the CLI with the real gpg binary."""
    return cli(workspace)


@attr.s(frozen=True)
class Keyring:
    home: pathlib.Path = attr.ib()

    def gpg(self, *arguments: str, stdin: typing.Optional[bytes] = None) -> bytes:
        env = {**os.environ, 'GNUPGHOME': self.home.as_posix()}
        return subprocess.run(
            ('gpg', '--batch', '--pinentry-mode', 'loopback', '--passphrase', '', *arguments),
            input=stdin,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=env,
            check=True).stdout

    def generate(self, uid: str) -> str:
        """Create an unprotected key and return its fingerprint."""
        self.gpg('--quick-gen-key', uid, 'ed25519', 'cert,sign', 'never')
        return self.fingerprints(uid)[0]

    def fingerprints(self, uid: typing.Optional[str] = None) -> typing.List[str]:
        output = self.gpg('--with-colons', '--list-keys', *([uid] if uid else []))
        return [
            line.split(':')[9]
            for line in output.decode('utf-8').splitlines()
            if line.startswith('fpr')
        ]

    def export(self, uid: str, secret: bool = False) -> bytes:
        return self.gpg('--armor', '--export-secret-keys' if secret else '--export', uid)


def keyring(directory: pathlib.Path):
    directory.mkdir(mode=0o700)
    yield Keyring(directory)
    if shutil.which('gpgconf') is None:
        return
    subprocess.run(
        ('gpgconf', '--kill', 'gpg-agent'),
        env={**os.environ, 'GNUPGHOME': directory.as_posix()},
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL)


@pytest.fixture()
def gnupghome(tmp_path):
    """An empty keyring the code under test imports into."""
    yield from keyring(tmp_path / 'gnupg')


@pytest.fixture()
def signer(tmp_path):
    """A separate keyring holding generated keys."""
    yield from keyring(tmp_path / 'signer')
