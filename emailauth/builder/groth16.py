"""Groth16 proof transport type and its on-chain byte encoding.

The encoding is a wire contract with the Solidity verifier: eight field
elements in the order ``a0 a1 b00 b01 b10 b11 c0 c1``, each a 32-byte
big-endian unsigned integer, hex encoded behind a ``0x`` prefix.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from .errors import EncodingOverflow


FIELD_WIDTH = 32
ENCODED_LENGTH = 8 * FIELD_WIDTH

G1 = tuple[int, int]
G2 = tuple[tuple[int, int], tuple[int, int]]


def parse_field_element(value: Any) -> int:
    """Accept ints, decimal strings (snarkjs) and ``0x`` hex strings."""

    if isinstance(value, bool):
        raise TypeError("Field elements must be integers, not booleans")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text[:2].lower() == "0x":
            return int(text, 16)
        return int(text, 10)
    raise TypeError(f"Unsupported field element type: {type(value).__name__}")


def _pair(values: Sequence[Any]) -> tuple[int, int]:
    # snarkjs emits projective coordinates; only the affine pair is encoded.
    if len(values) < 2:
        raise ValueError("Curve point requires at least two coordinates")
    return parse_field_element(values[0]), parse_field_element(values[1])


@dataclass(frozen=True)
class Groth16Proof:
    """Proof points plus public signals, as produced by a prover."""

    pi_a: G1
    pi_b: G2
    pi_c: G1
    public_signals: list[int] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Groth16Proof":
        """Build a proof from snarkjs-style JSON.

        Accepts either a flat ``{pi_a, pi_b, pi_c, publicSignals}`` object or a
        ``{"proof": {...}, "publicSignals": [...]}`` envelope.
        """

        points = data.get("proof", data)
        if not isinstance(points, dict):
            raise ValueError("Proof payload must be a JSON object")
        try:
            pi_b = points["pi_b"]
            if len(pi_b) < 2:
                raise ValueError("pi_b requires two coordinate pairs")
            return cls(
                pi_a=_pair(points["pi_a"]),
                pi_b=(_pair(pi_b[0]), _pair(pi_b[1])),
                pi_c=_pair(points["pi_c"]),
                public_signals=[
                    parse_field_element(signal)
                    for signal in data.get("publicSignals", points.get("publicSignals", []))
                ],
            )
        except KeyError as exc:
            raise ValueError(f"Proof payload missing {exc.args[0]}") from exc

    def field_elements(self) -> list[tuple[str, int]]:
        return [
            ("pi_a[0]", self.pi_a[0]),
            ("pi_a[1]", self.pi_a[1]),
            ("pi_b[0][0]", self.pi_b[0][0]),
            ("pi_b[0][1]", self.pi_b[0][1]),
            ("pi_b[1][0]", self.pi_b[1][0]),
            ("pi_b[1][1]", self.pi_b[1][1]),
            ("pi_c[0]", self.pi_c[0]),
            ("pi_c[1]", self.pi_c[1]),
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "pi_a": [str(value) for value in self.pi_a],
            "pi_b": [[str(value) for value in pair] for pair in self.pi_b],
            "pi_c": [str(value) for value in self.pi_c],
            "publicSignals": [str(value) for value in self.public_signals],
        }


def encode_groth16(proof: Groth16Proof) -> str:
    """Serialize ``proof`` into the verifier's fixed 256-byte layout.

    Raises:
        EncodingOverflow: If any element is negative or wider than 32 bytes.
    """

    chunks: list[bytes] = []
    for name, value in proof.field_elements():
        try:
            chunks.append(value.to_bytes(FIELD_WIDTH, "big", signed=False))
        except OverflowError as exc:
            raise EncodingOverflow(
                f"{name} does not fit in {FIELD_WIDTH} bytes: {value:#x}"
            ) from exc
    return "0x" + b"".join(chunks).hex()


def decode_groth16(encoded: str) -> tuple[G1, G2, G1]:
    """Split an encoded proof back into its ``pi_a``, ``pi_b``, ``pi_c`` groups."""

    if not encoded.startswith("0x"):
        raise ValueError("Encoded proof must be 0x-prefixed")
    raw = bytes.fromhex(encoded[2:])
    if len(raw) != ENCODED_LENGTH:
        raise ValueError(f"Encoded proof must be {ENCODED_LENGTH} bytes, got {len(raw)}")

    values = [
        int.from_bytes(raw[offset : offset + FIELD_WIDTH], "big")
        for offset in range(0, ENCODED_LENGTH, FIELD_WIDTH)
    ]
    return (
        (values[0], values[1]),
        ((values[2], values[3]), (values[4], values[5])),
        (values[6], values[7]),
    )


__all__ = [
    "ENCODED_LENGTH",
    "FIELD_WIDTH",
    "Groth16Proof",
    "decode_groth16",
    "encode_groth16",
    "parse_field_element",
]
