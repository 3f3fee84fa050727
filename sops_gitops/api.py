import logging
import pathlib
import typing

from .config import SopsConfig, config_path, update_sops_config
from .gpg import GPG, FingerprintSource
from .keys import split_keys
from .secrets import Secret, SecretKeeper, find_secret_files
from .sops import Sops
from .utils import ConfigError

log = logging.getLogger(__name__)


def keeper(directory: pathlib.Path, sops: typing.Optional[Sops] = None) -> SecretKeeper:
    return SecretKeeper(
        directory=directory,
        secrets={path.resolve(): Secret(path.resolve()) for path in find_secret_files(directory)},
        sops=sops or Sops(config=config_path(directory)))


def rotate(
        directory: pathlib.Path,
        private_key: str,
        public_keys: str,
        gpg: GPG = GPG()) -> SopsConfig:
    """Import the private key and public keys, then add rules for the public keys."""
    log.info("Importing private key")
    gpg.import_key(private_key)

    keys = split_keys(public_keys)
    log.info(f"Importing {len(keys)} public keys")
    for public_key in keys:
        gpg.import_key(public_key)

    return update_sops_config(config_path(directory), public_keys, gpg)


def init_sops_config(
        directory: pathlib.Path,
        private_key: str,
        source: FingerprintSource) -> SopsConfig:
    """Create a .sops.yaml with a single key group for the team key."""
    path = config_path(directory)
    if path.exists():
        raise ConfigError(f"{path} already exists")

    config = SopsConfig(path=path)
    config.add_key_group_rule([source.key_fingerprint(private_key)])
    config.save()
    return config
