import logging
import pathlib
import subprocess
import typing

import attr

from .utils import SopsError

log = logging.getLogger(__name__)


@attr.s(frozen=True)
class Sops:
    config: pathlib.Path = attr.ib()
    verbose: bool = attr.ib(default=False)

    def command(self, arguments: typing.Sequence[str]) -> typing.Tuple[str, ...]:
        command: typing.Tuple[str, ...] = ('sops', '--config', str(self.config))
        if self.verbose:
            command = (*command, '--verbose')
        return (*command, *arguments)

    def run(self,
            arguments: typing.Sequence[str],
            stdin: typing.Optional[str] = None,
            stdout: typing.Any = subprocess.PIPE) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                self.command(arguments),
                encoding='utf-8',
                input=stdin,
                stdout=stdout,
                stderr=None if self.verbose else subprocess.PIPE,
                check=True)
        except OSError as error:
            raise SopsError(f"Failed to run sops: {error}") from error
        except subprocess.CalledProcessError as error:
            for line in (error.stderr or '').splitlines():
                log.error(line)
            raise SopsError(
                f"sops {' '.join(arguments)} exited with status {error.returncode}"
            ) from error

    def encrypt(self, path: pathlib.Path, text: str) -> None:
        """Encrypt YAML text into a new file."""
        log.debug(f"Encrypting {path}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            output = path.open('w', encoding='utf-8')
        except OSError as error:
            raise SopsError(f"Failed to create {path}: {error}") from error

        try:
            with output:
                self.run([
                    '--input-type', 'yaml',
                    '--output-type', 'yaml',
                    '--encrypt', '/dev/stdin',
                ], stdin=text, stdout=output)
        except SopsError:
            path.unlink()
            raise

    def updatekeys(self, path: pathlib.Path) -> None:
        """Re-encrypt a file's data key for the keys the current rules name."""
        log.debug(f"Updating keys of {path}")
        self.run(['updatekeys', str(path), '--yes'])
