"""Deterministic identifiers derived for each guardian email.

All digests are Ethereum Keccak-256 (not NIST SHA3-256, which pads
differently) rendered as ``0x``-prefixed lowercase hex.  Absent values are the
literal sentinel ``"0x"`` so the output schema never carries ``null``.
"""

from __future__ import annotations

import enum

from Crypto.Hash import keccak


SENTINEL = "0x"


def keccak_hex(data: bytes | str) -> str:
    """Hash raw bytes, or the UTF-8 encoding of ``data``, with Keccak-256."""

    if isinstance(data, str):
        data = data.encode("utf-8")
    return "0x" + keccak.new(digest_bits=256, data=bytes(data)).hexdigest()


def compute_nullifier(message_id: str) -> str:
    return keccak_hex(message_id.strip())


def compute_nullifier_alt(header_text: str, account_salt: str) -> str:
    return keccak_hex(header_text + account_salt)


def compute_template_id(template_index: int) -> str:
    return keccak_hex(f"acceptance_template_{template_index}")


def is_sentinel(value: str | None) -> bool:
    return value is None or value == SENTINEL


class NullifierScheme(enum.Enum):
    """Nullifier derivation agreed with the on-chain template.

    The two schemes produce unrelated values for the same email, so a
    deployment must pick one and keep it.
    """

    MESSAGE_ID = "message-id"
    HEADER_SALT = "header-salt"

    def derive(
        self,
        *,
        message_id: str | None,
        header_text: str,
        account_salt: str,
        fallback: str,
    ) -> str:
        """Compute the nullifier for one email.

        ``fallback`` stands in for the Message-ID when the header is missing.
        """

        if self is NullifierScheme.HEADER_SALT:
            return compute_nullifier_alt(header_text, account_salt)
        return compute_nullifier(message_id or fallback)


__all__ = [
    "SENTINEL",
    "NullifierScheme",
    "compute_nullifier",
    "compute_nullifier_alt",
    "compute_template_id",
    "is_sentinel",
    "keccak_hex",
]
