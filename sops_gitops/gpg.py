import logging
import os
import pathlib
import subprocess
import typing

import attr

from .keys import decode_key
from .utils import FingerprintNotFound, GPGError, ParseError

log = logging.getLogger(__name__)

FINGERPRINT_RECORD = 'fpr'
FINGERPRINT_FIELD = 9


def parse_fingerprint(output: str) -> str:
    """
    Find the fingerprint in the output of `gpg --with-colons`.

    The first line starting with 'fpr' holds the fingerprint of the primary key
    in its 10th field.
    """
    for line in output.splitlines():
        if not line.startswith(FINGERPRINT_RECORD):
            continue
        fields = line.split(':')
        if len(fields) > FINGERPRINT_FIELD and fields[FINGERPRINT_FIELD]:
            return fields[FINGERPRINT_FIELD]
        break
    raise FingerprintNotFound("Failed to extract fingerprint from gpg output")


class FingerprintSource:
    def fingerprint(self, key: bytes) -> str:
        raise NotImplementedError

    def key_fingerprint(self, encoded: str) -> str:
        return self.fingerprint(decode_key(encoded))


@attr.s(frozen=True)
class GPG(FingerprintSource):
    verbose: bool = attr.ib(default=False)
    home: typing.Optional[pathlib.Path] = attr.ib(default=None)

    def command(self, arguments: typing.Sequence[str]) -> typing.Tuple[str, ...]:
        command: typing.Tuple[str, ...] = ('gpg', '--batch')
        if self.verbose:
            command = (*command, '--verbose')
        return (*command, *arguments)

    def run(self,
            arguments: typing.Sequence[str],
            stdin: bytes) -> subprocess.CompletedProcess:
        env = dict(os.environ)
        if self.home:
            env['GNUPGHOME'] = self.home.as_posix()
        try:
            return subprocess.run(
                self.command(arguments),
                input=stdin,
                stdout=subprocess.PIPE,
                stderr=None if self.verbose else subprocess.PIPE,
                env=env,
                check=True)
        except OSError as error:
            raise GPGError(f"Failed to run gpg: {error}") from error
        except subprocess.CalledProcessError as error:
            for line in (error.stderr or b'').decode('utf-8', 'replace').splitlines():
                log.error(line)
            raise GPGError(
                f"gpg {' '.join(arguments)} exited with status {error.returncode}"
            ) from error

    def import_key(self, encoded: str) -> None:
        """Import an encoded key into the keyring."""
        key = decode_key(encoded)
        log.debug(f"Importing {len(key)} byte key")
        self.run(['--import'], stdin=key)

    def fingerprint(self, key: bytes) -> str:
        """Read the fingerprint of a key without importing it."""
        result = self.run([
            '--with-colons',
            '--import-options', 'show-only',
            '--import',
            '--fingerprint',
        ], stdin=key)

        try:
            output = result.stdout.decode('utf-8')
        except UnicodeDecodeError as error:
            raise ParseError(f"Failed to parse gpg output: {error}") from error

        fingerprint = parse_fingerprint(output)
        log.debug(f"Found fingerprint {fingerprint}")
        return fingerprint
