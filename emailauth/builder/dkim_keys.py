"""DKIM public key lookup and hashing."""

from __future__ import annotations

import base64
import binascii
import logging
import re
from typing import Protocol

import dns.exception
import dns.resolver

from .errors import DnsResolutionFailure
from .identifiers import SENTINEL, keccak_hex


logger = logging.getLogger(__name__)

_P_TAG = re.compile(r"(?:^|[;\s])p=([A-Za-z0-9+/]+=*)")


class TxtResolver(Protocol):
    """DNS TXT lookup capability.

    Implementations return one list of character-strings per TXT record, in
    answer order, and raise :class:`dns.exception.DNSException` (or
    :class:`DnsResolutionFailure`) when the name cannot be resolved.
    """

    def resolve_txt(self, name: str) -> list[list[bytes]]:  # pragma: no cover - interface
        ...


class DnsPythonTxtResolver:
    """:class:`TxtResolver` backed by the system resolver via dnspython."""

    def __init__(self, resolver: dns.resolver.Resolver | None = None):
        self._resolver = resolver or dns.resolver.Resolver()

    def resolve_txt(self, name: str) -> list[list[bytes]]:
        answer = self._resolver.resolve(name, "TXT")
        return [list(rdata.strings) for rdata in answer]


def join_txt_records(records: list[list[bytes]]) -> str:
    """Join each record's character-strings, then the records, in order."""

    joined = b"".join(b"".join(strings) for strings in records)
    return joined.decode("utf-8", errors="replace")


def extract_public_key(txt: str) -> bytes:
    """Decode the base64 ``p=`` tag of a DKIM key record.

    Raises:
        DnsResolutionFailure: If the tag is missing, empty or not base64.
    """

    match = _P_TAG.search(txt)
    if match is None:
        raise DnsResolutionFailure("p= tag missing in DNS TXT")

    encoded = match.group(1).rstrip("=")
    encoded += "=" * (-len(encoded) % 4)
    try:
        return base64.b64decode(encoded, validate=True)
    except (ValueError, binascii.Error) as exc:
        raise DnsResolutionFailure("p= tag is not valid base64") from exc


def resolve_public_key_hash(selector: str, domain: str, resolver: TxtResolver) -> str:
    """Return the Keccak-256 hash of the signer's key, or ``"0x"`` on failure.

    Failures are logged and never retried.
    """

    name = f"{selector}._domainkey.{domain}"
    try:
        public_key = extract_public_key(join_txt_records(resolver.resolve_txt(name)))
    except (dns.exception.DNSException, DnsResolutionFailure, OSError) as exc:
        logger.warning("DNS %s: %s", name, str(exc) or type(exc).__name__)
        return SENTINEL

    digest = keccak_hex(public_key)
    logger.debug("DNS %s: public key hash %s", name, digest)
    return digest


__all__ = [
    "DnsPythonTxtResolver",
    "TxtResolver",
    "extract_public_key",
    "join_txt_records",
    "resolve_public_key_hash",
]
