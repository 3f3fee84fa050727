import logging
import os.path
import pathlib
import typing

import attr

from .sops import Sops
from .utils import SopsGitopsException, SopsError

log = logging.getLogger(__name__)

SOPS_MARKER = 'sops:'
PLACEHOLDER = 'key: value\n'


def find_secret_files(directory: pathlib.Path) -> typing.Tuple[pathlib.Path, ...]:
    """
    Find YAML files that have been encrypted by sops.

    A file counts as encrypted when it contains the text 'sops:', which is
    where sops keeps its metadata. The YAML is not parsed.
    """
    log.info(f"Searching for encrypted files in {directory}")
    found = []
    for path in sorted(directory.glob('**/*.yaml')):
        if not path.is_file():
            continue
        try:
            content = path.read_text(encoding='utf-8', errors='replace')
        except OSError as error:
            raise SopsError(f"Failed to read {path}: {error}") from error
        if SOPS_MARKER in content:
            found.append(path)
    log.info(f"Found {len(found)} encrypted files in {directory}")
    return tuple(found)


@attr.s(frozen=True)
class Secret:
    path: pathlib.Path = attr.ib()

    def __str__(self):
        return self.path.name

    def create(self, sops: Sops, text: str = PLACEHOLDER) -> None:
        log.debug(f"Creating {self.path}")
        sops.encrypt(self.path, text)

    def update(self, sops: Sops) -> bool:
        """
        Re-encrypt an existing secret, or create a placeholder if it is missing.

        Returns True when the secret was created.
        """
        if self.path.exists():
            log.debug(f"Re-encrypting {self.path}")
            sops.updatekeys(self.path)
            return False

        self.create(sops)
        return True


@attr.s(frozen=True)
class SecretKeeper:
    secrets: typing.Dict[pathlib.Path, Secret] = attr.ib()
    sops: Sops = attr.ib()

    directory: pathlib.Path = attr.ib(factory=pathlib.Path.cwd)

    def __getitem__(self, item: pathlib.Path) -> Secret:
        if item.resolve() not in self.secrets.keys():
            raise SopsGitopsException(f"No secret named {item}")

        return self.secrets[item.resolve()]

    def __iter__(self):
        return iter(sorted(self.secrets.values(), key=lambda s: s.path))

    def __len__(self):
        return len(self.secrets)

    def rel(self, path: pathlib.Path) -> str:
        return os.path.relpath(path.as_posix(), self.directory.as_posix())

    def get(self, item: pathlib.Path) -> Secret:
        """Get a known secret, or a new one for a path that is not encrypted yet."""
        return self.secrets.get(item.resolve(), Secret(item.resolve()))

    def update(
            self,
            paths: typing.Sequence[pathlib.Path] = ()) -> typing.List[typing.Tuple[Secret, bool]]:
        """
        Update the secrets at some paths, or every known secret if none are given.

        Stops at the first secret that fails.
        """
        selected = [self.get(path) for path in paths] if paths else list(self)
        log.info(f"Updating {len(selected)} secrets")
        updated = []
        for secret in selected:
            log.info(f"Updating {self.rel(secret.path)}")
            updated.append((secret, secret.update(self.sops)))
        log.info(f"Updated {len(updated)} secrets")
        return updated
