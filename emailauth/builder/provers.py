"""Prover capability: turn a raw email plus circuit inputs into a Groth16 proof.

The circuit and its proving keys live behind the proving service; this module
only speaks to it.  :class:`NullProver` stands in when no service is wired up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

import httpx

from .errors import ProverFailure
from .groth16 import Groth16Proof, parse_field_element


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CircuitInput:
    """Named external input handed to the prover alongside the email."""

    name: str
    value: str
    type: str
    max_length: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "type": self.type,
            "maxLength": self.max_length,
        }


class Prover(Protocol):
    def prove(self, raw_email: str, inputs: Sequence[CircuitInput]) -> Groth16Proof:  # pragma: no cover - interface
        ...


_PLACEHOLDER_POINTS = {
    "pi_a": (
        0x1234567890ABCDEF1234567890ABCDEF1234567890ABCDEF1234567890ABCDEF,
        0xFEDCBA0987654321FEDCBA0987654321FEDCBA0987654321FEDCBA0987654321,
    ),
    "pi_b": (
        (
            0xABCDEF1234567890ABCDEF1234567890ABCDEF1234567890ABCDEF1234567890,
            0x0987654321FEDCBA0987654321FEDCBA0987654321FEDCBA0987654321FEDCBA,
        ),
        (
            0x5555555555555555555555555555555555555555555555555555555555555555,
            0xAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA,
        ),
    ),
    "pi_c": (
        0x1111111111111111111111111111111111111111111111111111111111111111,
        0x2222222222222222222222222222222222222222222222222222222222222222,
    ),
}


class NullProver:
    """Return a structurally valid but cryptographically meaningless proof.

    Public signals echo the circuit input values so downstream tooling can
    still correlate a placeholder proof with the email it was built for.
    """

    def prove(self, raw_email: str, inputs: Sequence[CircuitInput]) -> Groth16Proof:
        signals: list[int] = []
        for item in inputs:
            try:
                signals.append(parse_field_element(item.value))
            except ValueError:
                signals.append(0)
        return Groth16Proof(
            pi_a=_PLACEHOLDER_POINTS["pi_a"],
            pi_b=_PLACEHOLDER_POINTS["pi_b"],
            pi_c=_PLACEHOLDER_POINTS["pi_c"],
            public_signals=signals,
        )


class RemoteProver:
    """Client for a remote Groth16 proving service.

    ``POST {base_url}/prove`` with ``{blueprint, email, externalInputs}``; the
    service answers with snarkjs-style ``{proof, publicSignals}`` JSON.
    """

    def __init__(
        self,
        base_url: str,
        blueprint: str,
        *,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.blueprint = blueprint
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = httpx.Client(base_url=base_url, headers=headers, timeout=timeout, transport=transport)

    def prove(self, raw_email: str, inputs: Sequence[CircuitInput]) -> Groth16Proof:
        payload = {
            "blueprint": self.blueprint,
            "email": raw_email,
            "externalInputs": [item.to_dict() for item in inputs],
        }
        logger.debug("Requesting proof for blueprint %s", self.blueprint)
        try:
            response = self._client.post("/prove", json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise ProverFailure(
                f"proving service rejected request: HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ProverFailure(f"proving service unreachable: {exc}") from exc
        except ValueError as exc:
            raise ProverFailure("proving service returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise ProverFailure("proving service returned a non-object payload")
        try:
            return Groth16Proof.from_dict(body)
        except (ValueError, TypeError) as exc:
            raise ProverFailure(f"malformed proof from proving service: {exc}") from exc

    def close(self) -> None:
        self._client.close()


__all__ = [
    "CircuitInput",
    "NullProver",
    "Prover",
    "RemoteProver",
]
