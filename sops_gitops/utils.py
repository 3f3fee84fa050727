import pathlib
import typing

import click
import git


def find_git_directory() -> typing.Optional[pathlib.Path]:
    try:
        repo = git.Repo(search_parent_directories=True)
    except git.exc.InvalidGitRepositoryError:
        return None
    return pathlib.Path(repo.working_dir)


def find_workspace_directory() -> pathlib.Path:
    """Use the current git repository, or the working directory outside one."""
    return find_git_directory() or pathlib.Path.cwd()


class SopsGitopsException(click.ClickException):
    pass


class DecodeError(SopsGitopsException):
    """A key is not valid base64."""


class GPGError(SopsGitopsException):
    """The gpg command could not be run or failed."""


class ParseError(SopsGitopsException):
    """The output of the gpg command could not be understood."""


class FingerprintNotFound(ParseError):
    pass


class ConfigError(SopsGitopsException):
    """The .sops.yaml file could not be read or written."""


class SopsError(SopsGitopsException):
    """The sops command could not be run or failed."""
