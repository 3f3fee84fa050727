"""
The .sops.yaml file holds the creation rules sops uses to pick the keys new
secrets are encrypted for.
"""

import logging
import pathlib
import typing

import attr
import yaml

from .gpg import FingerprintSource
from .keys import split_keys
from .utils import ConfigError

log = logging.getLogger(__name__)

CONFIG_NAME = '.sops.yaml'
RULES = 'creation_rules'

Rule = typing.Dict[str, typing.Any]


def config_path(directory: pathlib.Path) -> pathlib.Path:
    return directory / CONFIG_NAME


@attr.s
class SopsConfig:
    path: pathlib.Path = attr.ib()
    document: typing.Dict[str, typing.Any] = attr.ib(factory=lambda: {RULES: []})

    @classmethod
    def load(cls, path: pathlib.Path) -> 'SopsConfig':
        if not path.exists():
            log.info(f"No config at {path}, starting with no rules")
            return cls(path=path)

        log.info(f"Reading {path}")
        try:
            document = yaml.safe_load(path.read_text(encoding='utf-8'))
        except OSError as error:
            raise ConfigError(f"Failed to read {path}: {error}") from error
        except yaml.YAMLError as error:
            raise ConfigError(f"Failed to parse {path}: {error}") from error

        if not isinstance(document, dict) or not isinstance(document.get(RULES), list):
            raise ConfigError(
                f"Invalid {CONFIG_NAME} structure in {path}: "
                f"expected a mapping with a '{RULES}' list")

        return cls(path=path, document=document)

    @property
    def rules(self) -> typing.List[Rule]:
        return self.document[RULES]

    def add_rule(self, rule: Rule) -> None:
        self.rules.append(rule)

    def add_pgp_rule(self, fingerprint: str) -> None:
        log.debug(f"Adding rule for {fingerprint}")
        self.add_rule({'pgp': [fingerprint]})

    def add_key_group_rule(self, fingerprints: typing.Sequence[str]) -> None:
        log.debug(f"Adding key group rule for {', '.join(fingerprints)}")
        self.add_rule({'key_groups': [{'pgp': list(fingerprints)}]})

    def fingerprints(self) -> typing.List[str]:
        """All pgp fingerprints named by the rules, in order."""
        found: typing.List[str] = []
        for rule in self.rules:
            if not isinstance(rule, dict):
                continue
            found.extend(rule.get('pgp') or [])
            for group in rule.get('key_groups') or []:
                found.extend(group.get('pgp') or [])
        return found

    def dumps(self) -> str:
        return yaml.safe_dump(self.document, default_flow_style=False, sort_keys=False)

    def save(self) -> None:
        log.info(f"Writing {len(self.rules)} rules to {self.path}")
        try:
            self.path.write_text(self.dumps(), encoding='utf-8')
        except OSError as error:
            raise ConfigError(f"Failed to write {self.path}: {error}") from error


def update_sops_config(
        path: pathlib.Path,
        public_keys: str,
        source: FingerprintSource) -> SopsConfig:
    """Append a pgp rule for each of a comma separated list of encoded keys."""
    config = SopsConfig.load(path)
    for public_key in split_keys(public_keys):
        config.add_pgp_rule(source.key_fingerprint(public_key))
    config.save()
    return config
