"""
Keys are passed around base64 encoded so they fit in a single CLI argument or
environment variable.
"""

import base64
import binascii
import logging
import pathlib
import typing

from .utils import DecodeError

log = logging.getLogger(__name__)


def decode_key(encoded: str) -> bytes:
    try:
        return base64.b64decode(encoded.strip(), validate=True)
    except (binascii.Error, ValueError) as error:
        raise DecodeError(f"Failed to decode base64 key: {error}") from error


def split_keys(keys: str) -> typing.Tuple[str, ...]:
    """Split a comma separated list of encoded keys, ignoring empty entries."""
    return tuple(key.strip() for key in keys.split(',') if key.strip())


def read_keys_file(path: pathlib.Path) -> typing.Tuple[str, ...]:
    """Read encoded keys from a file containing one key per line."""
    log.debug(f"Reading public keys from {path}")
    lines = path.read_text(encoding='utf-8').splitlines()
    return tuple(line.strip() for line in lines if line.strip())
