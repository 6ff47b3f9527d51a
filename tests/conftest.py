import base64
from pathlib import Path

import dns.resolver
import pytest

from emailauth.builder.identifiers import keccak_hex


FIXTURE_DIR = Path(__file__).parent / "data"
ACCOUNT = "0x5615dEb798bb3e4Dfa0139dFa1B3D433cC23b72f"
ALICE_SALT = "0xdeadbeef00000000000000000000000000000000000000000000000000000001"
PUBLIC_KEY = b"\x30\x82\x01\x22" + bytes(range(64))


class FakeTxtResolver:
    """In-memory TXT resolver; unknown names raise NXDOMAIN."""

    def __init__(self, records: dict[str, list[list[bytes]]] | None = None):
        self.records = records or {}
        self.queries: list[str] = []

    def resolve_txt(self, name: str) -> list[list[bytes]]:
        self.queries.append(name)
        if name not in self.records:
            raise dns.resolver.NXDOMAIN()
        return self.records[name]


def dkim_record(public_key: bytes = PUBLIC_KEY) -> list[list[bytes]]:
    encoded = base64.b64encode(public_key)
    # Long keys are published as several character-strings of one record.
    return [[b"v=DKIM1; k=rsa; p=" + encoded[:20], encoded[20:]]]


@pytest.fixture
def public_key_hash() -> str:
    return keccak_hex(PUBLIC_KEY)


@pytest.fixture
def resolver() -> FakeTxtResolver:
    return FakeTxtResolver(
        {
            "sel1._domainkey.example.com": dkim_record(),
            "sel2._domainkey.example.org": dkim_record(),
        }
    )
