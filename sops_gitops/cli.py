import functools
import logging
import os
import pathlib
import typing

import attr
import click
import dotenv

from . import __doc__, __version__
from .api import init_sops_config, keeper, rotate
from .config import config_path
from .gpg import GPG
from .keys import read_keys_file, split_keys
from .secrets import Secret, SecretKeeper
from .sops import Sops
from .utils import find_workspace_directory

log = logging.getLogger(__name__)

MESSAGE = 'encrypt sops secrets and update sops.yaml'
PRIVATE_KEY_ENVVARS = ('GPG_PRIVATE_KEY', 'GPG_MOCK_PRIVATE_KEY')
PUBLIC_KEYS_ENVVAR = 'GPG_PUBLIC_KEYS'


@functools.lru_cache()
def rel(path: pathlib.Path) -> str:
    """
    Convert a path to a relative Path.

    Returns a string as these should only be used for presentation.
    """
    return os.path.relpath(path.as_posix(), pathlib.Path.cwd().as_posix())


def sec(secret: Secret) -> str:
    """Style a path to a secret file."""
    return click.style(rel(secret.path), fg='green')


class PathType(click.Path):
    def convert(self, value, param, ctx):
        return pathlib.Path(super().convert(value, param, ctx))


@attr.s(frozen=True)
class Workspace:
    directory: pathlib.Path = attr.ib()
    gpg: GPG = attr.ib()
    sops: Sops = attr.ib()

    def keeper(self) -> SecretKeeper:
        return keeper(self.directory, sops=self.sops)


private_key_option = click.option(
    '--private-key', 'private_key',
    metavar='BASE64',
    envvar=list(PRIVATE_KEY_ENVVARS),
    required=True,
    type=click.STRING,
    help="Base64 encoded private GPG key.")


def rotate_keys(ws: Workspace, private_key: str, keys: typing.Sequence[str]) -> None:
    if not keys:
        raise click.UsageError("No public keys given")

    click.echo("Importing private key and public keys...")
    config = rotate(ws.directory, private_key, ','.join(keys), gpg=ws.gpg)

    for fingerprint in config.fingerprints()[-len(keys):]:
        click.echo(f"Added rule for {fingerprint}")
    click.echo(f"Updated {rel(config.path)} with {len(keys)} rules")
    click.echo(f"message={MESSAGE}")


@click.group(help=__doc__, invoke_without_command=True)
@click.option(
    '-p', '--path',
    type=PathType(
        file_okay=False,
        dir_okay=True,
        exists=True),
    default=find_workspace_directory,
    required=True,
    help="Defaults to the current git repository.")
@click.option(
    '-d', '--debug', 'debug',
    default=False,
    is_flag=True,
    help="Enable debug logging.")
@click.option(
    '-v', '--verbose', 'verbose',
    default=False,
    is_flag=True,
    help="Display the normal STDERR output of gpg and sops.")
@click.option(
    '--gnupghome',
    type=PathType(file_okay=False, dir_okay=True),
    envvar='GNUPGHOME',
    default=None,
    help="Keyring directory used by gpg.")
@click.option(
    '--env-file',
    type=PathType(file_okay=True, dir_okay=False),
    default='.env',
    show_default=True,
    help="Environment variables to load, if the file exists.")
@click.option(
    '--private-key', 'private_key',
    metavar='BASE64',
    default=None,
    type=click.STRING,
    help="Base64 encoded private GPG key, imports keys when no command is given.")
@click.option(
    '--public-keys', 'public_keys',
    metavar='BASE64[,BASE64...]',
    default=None,
    type=click.STRING,
    help="Comma separated list of base64 encoded public GPG keys.")
@click.pass_context
def main(
        ctx,
        path: pathlib.Path,
        debug: bool,
        verbose: bool,
        gnupghome: typing.Optional[pathlib.Path],
        env_file: pathlib.Path,
        private_key: typing.Optional[str],
        public_keys: typing.Optional[str]):
    logging.basicConfig(level=(logging.DEBUG if debug else logging.WARNING))
    if env_file.is_file():
        log.debug(f"Loading environment from {env_file}")
        dotenv.load_dotenv(env_file, override=False)
    ctx.obj = Workspace(
        directory=path,
        gpg=GPG(verbose=verbose, home=gnupghome),
        sops=Sops(config=config_path(path), verbose=verbose))

    if ctx.invoked_subcommand is not None:
        if private_key or public_keys:
            raise click.UsageError(
                f"--private-key and --public-keys are options of '{ctx.invoked_subcommand}'"
                f", give them after the command")
        return

    # The environment is read here as the .env file is loaded after option parsing.
    private_key = private_key or next(
        (os.environ[name] for name in PRIVATE_KEY_ENVVARS if os.environ.get(name)), None)
    if not private_key:
        raise click.UsageError("Missing option '--private-key'.")
    if public_keys is None:
        public_keys = os.environ.get(PUBLIC_KEYS_ENVVAR, '')
    rotate_keys(ctx.obj, private_key, split_keys(public_keys))


@main.command()
def version():
    """Show the application version."""
    click.echo(f"sops-gitops {__version__}")


@main.command()
@private_key_option
@click.option(
    '--public-keys', 'public_keys',
    metavar='BASE64[,BASE64...]',
    envvar=PUBLIC_KEYS_ENVVAR,
    default='',
    type=click.STRING,
    help="Comma separated list of base64 encoded public GPG keys.")
@click.option(
    '--public-keys-file', 'public_keys_file',
    type=PathType(exists=True, dir_okay=False),
    default=None,
    help="File containing one base64 encoded public GPG key per line.")
@click.pass_obj
def run(
        ws: Workspace,
        private_key: str,
        public_keys: str,
        public_keys_file: typing.Optional[pathlib.Path]):
    """
    Import keys and add a rule for each public key to .sops.yaml.

    The private key is imported first, followed by each public key. A pgp
    creation rule is then appended to .sops.yaml for every public key.
    """
    keys = split_keys(public_keys)
    if public_keys_file:
        keys += read_keys_file(public_keys_file)
    rotate_keys(ws, private_key, keys)


@main.command(name='import')
@click.argument('keys', metavar='BASE64...', required=True, nargs=-1)
@click.pass_obj
def import_keys(ws: Workspace, keys: typing.Sequence[str]):
    """Import base64 encoded keys into the keyring."""
    for key in keys:
        ws.gpg.import_key(key)
    click.echo(f"Imported {len(keys)} keys")


@main.command()
@click.argument('keys', metavar='[BASE64...]', required=False, nargs=-1)
@click.option(
    '-f', '--file', 'files',
    type=PathType(exists=True, dir_okay=False),
    multiple=True,
    help="Key file, armored or binary.")
@click.pass_obj
def fingerprint(
        ws: Workspace,
        keys: typing.Sequence[str],
        files: typing.Sequence[pathlib.Path]):
    """Print the fingerprints of keys without importing them."""
    if not keys and not files:
        raise click.UsageError("No keys given")

    for key in keys:
        click.echo(ws.gpg.key_fingerprint(key))
    for file in files:
        click.echo(ws.gpg.fingerprint(file.read_bytes()))


@main.command()
@private_key_option
@click.pass_obj
def init(ws: Workspace, private_key: str):
    """Create .sops.yaml with a key group for the team's private key."""
    config = init_sops_config(ws.directory, private_key, ws.gpg)
    click.echo(f"Created {rel(config.path)}")


@main.command()
@click.pass_obj
def ls(ws: Workspace):
    """List all files encrypted by sops."""
    for secret in ws.keeper():
        click.echo(sec(secret))


@main.command()
@click.argument(
    'secrets',
    type=PathType(dir_okay=False),
    required=False,
    nargs=-1)
@click.pass_obj
def update(ws: Workspace, secrets: typing.Sequence[pathlib.Path]):
    """
    Re-encrypt secrets for the keys named in .sops.yaml.

    Secrets that do not exist yet are created with placeholder contents. If no
    paths are provided, updates all encrypted files in the workspace.
    """
    for secret, created in ws.keeper().update(secrets):
        click.echo(f"{'Created' if created else 'Updated'} {sec(secret)}")


@main.command()
@click.argument('path', type=PathType(dir_okay=False), required=True)
@click.pass_obj
def create(ws: Workspace, path: pathlib.Path):
    """Create a new secret file with placeholder contents."""
    secret = Secret(path)
    if secret.path.exists():
        raise click.ClickException(f"{rel(path)} already exists")

    secret.create(ws.sops)
    click.echo(f"Created {sec(secret)}")
