"""Read-only run configuration: salts, guardians, addresses and templates.

Two identity key spaces exist across the recovery flow: guardian email
addresses, and the guardian's EmailAuth contract address.  They are kept as
separate types and only :meth:`GuardianDirectory.authenticator_for` converts
one into the other.
"""

from __future__ import annotations

import enum
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import ConfigurationLoadFailure


logger = logging.getLogger(__name__)

SALTS_FILE = "salts.json"
GUARDIANS_FILE = "guardians.json"
ADDRESSES_FILE = "addresses.json"
TEMPLATES_FILE = "templates.json"

DEFAULT_SALTS: dict[str, str] = {}
DEFAULT_TEMPLATES: dict[str, dict[str, Any]] = {
    "0": {
        "commandTemplate": ["Accept", "guardian", "request", "for", "{ethAddr}"],
        "description": "Guardian acceptance template",
    },
    "1": {
        "commandTemplate": ["Recover", "account", "for", "{ethAddr}"],
        "description": "Account recovery template",
    },
}

_ADDRESS = re.compile(r"0x[0-9a-f]{40}")
_SALT = re.compile(r"0x(?:[0-9a-fA-F]{2})+")


@dataclass(frozen=True)
class EmailIdentity:
    """A guardian identified by its (lowercased) email address."""

    value: str

    def __post_init__(self) -> None:
        normalised = self.value.strip().lower()
        if "@" not in normalised:
            raise ValueError(f"Not an email address: {self.value!r}")
        object.__setattr__(self, "value", normalised)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class AuthenticatorAddress:
    """A guardian identified by its EmailAuth contract address."""

    value: str

    def __post_init__(self) -> None:
        normalised = self.value.strip().lower()
        if not _ADDRESS.fullmatch(normalised):
            raise ValueError(f"Not a contract address: {self.value!r}")
        object.__setattr__(self, "value", normalised)

    def __str__(self) -> str:
        return self.value


Identity = EmailIdentity | AuthenticatorAddress


class KeySpace(enum.Enum):
    EMAIL = "email"
    AUTHENTICATOR = "authenticator"

    @property
    def identity_type(self) -> type[EmailIdentity] | type[AuthenticatorAddress]:
        return EmailIdentity if self is KeySpace.EMAIL else AuthenticatorAddress


def read_json_document(path: Path) -> dict[str, Any]:
    """Load a JSON object from ``path``.

    Raises:
        ConfigurationLoadFailure: If the file is missing, unreadable or not a
            JSON object.
    """

    try:
        with path.open("r", encoding="utf-8") as handle:
            document = json.load(handle)
    except FileNotFoundError as exc:
        raise ConfigurationLoadFailure(f"{path} not found") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationLoadFailure(f"{path} is not readable JSON: {exc}") from exc

    if not isinstance(document, dict):
        raise ConfigurationLoadFailure(f"{path} must contain a JSON object")
    return document


def load_mapping(path: Path | None, label: str) -> dict[str, Any]:
    """Load an optional document, degrading to ``{}`` with a warning."""

    if path is None:
        return {}
    try:
        return read_json_document(path)
    except ConfigurationLoadFailure as exc:
        logger.warning("%s: %s; using empty configuration", label, exc)
        return {}


@dataclass
class GuardianSaltStore:
    """Per-guardian secret salts keyed by one identity type."""

    key_space: KeySpace
    salts: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, key_space: KeySpace, mapping: dict[str, Any]) -> "GuardianSaltStore":
        salts: dict[str, str] = {}
        for key, value in mapping.items():
            try:
                identity = key_space.identity_type(str(key))
            except ValueError:
                logger.warning("salts: ignoring key %r, not valid for %s key space", key, key_space.value)
                continue
            if not isinstance(value, str) or not _SALT.fullmatch(value):
                logger.warning("salts: ignoring salt for %s, expected a 0x-prefixed hex string", identity)
                continue
            salts[identity.value] = value
        return cls(key_space=key_space, salts=salts)

    @classmethod
    def from_file(cls, key_space: KeySpace, path: Path | None) -> "GuardianSaltStore":
        return cls.from_mapping(key_space, load_mapping(path, "salts"))

    def lookup(self, identity: Identity) -> str | None:
        if not isinstance(identity, self.key_space.identity_type):
            raise TypeError(
                f"Salt store is keyed by {self.key_space.value} identities, got {type(identity).__name__}"
            )
        return self.salts.get(identity.value)


@dataclass
class GuardianDirectory:
    """Mapping of guardian email addresses to their EmailAuth addresses."""

    entries: dict[EmailIdentity, AuthenticatorAddress] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, mapping: dict[str, Any]) -> "GuardianDirectory":
        entries: dict[EmailIdentity, AuthenticatorAddress] = {}
        for email, address in mapping.items():
            try:
                entries[EmailIdentity(str(email))] = AuthenticatorAddress(str(address))
            except ValueError as exc:
                logger.warning("guardians: ignoring entry %r: %s", email, exc)
        return cls(entries)

    @classmethod
    def from_file(cls, path: Path | None) -> "GuardianDirectory":
        return cls.from_mapping(load_mapping(path, "guardians"))

    def authenticator_for(self, email: EmailIdentity) -> AuthenticatorAddress | None:
        return self.entries.get(email)


@dataclass(frozen=True)
class CommandTemplate:
    """Command words the on-chain template expects, e.g. ``Accept guardian ...``."""

    index: int
    words: tuple[str, ...]
    description: str = ""

    def render(self, eth_addr: str) -> str:
        return " ".join(word.replace("{ethAddr}", eth_addr) for word in self.words)


def load_template(path: Path | None, index: int) -> CommandTemplate:
    """Return template ``index`` from ``path``, falling back to the defaults."""

    templates = load_mapping(path, "templates")
    entry = templates.get(str(index))
    if entry is None:
        if templates:
            logger.warning("templates: no template %d in %s; using built-in default", index, path)
        entry = DEFAULT_TEMPLATES.get(str(index))
    if entry is None:
        raise ConfigurationLoadFailure(f"Unknown command template index {index}")
    return CommandTemplate(
        index=index,
        words=tuple(entry.get("commandTemplate", [])),
        description=entry.get("description", ""),
    )


def ensure_configuration(config_dir: Path) -> list[Path]:
    """Create the default salts and templates documents if they are absent.

    Idempotent; existing files are never rewritten.  Returns the created paths.
    """

    config_dir.mkdir(parents=True, exist_ok=True)
    created: list[Path] = []
    for name, payload in ((SALTS_FILE, DEFAULT_SALTS), (TEMPLATES_FILE, DEFAULT_TEMPLATES)):
        path = config_dir / name
        if path.exists():
            continue
        with path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
        logger.info("Created %s with default payload", path)
        created.append(path)
    return created


__all__ = [
    "ADDRESSES_FILE",
    "AuthenticatorAddress",
    "CommandTemplate",
    "DEFAULT_TEMPLATES",
    "EmailIdentity",
    "GUARDIANS_FILE",
    "GuardianDirectory",
    "GuardianSaltStore",
    "Identity",
    "KeySpace",
    "SALTS_FILE",
    "TEMPLATES_FILE",
    "ensure_configuration",
    "load_mapping",
    "load_template",
    "read_json_document",
]
