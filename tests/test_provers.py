import json

import httpx
import pytest

from emailauth.builder.errors import ProverFailure
from emailauth.builder.groth16 import Groth16Proof, encode_groth16
from emailauth.builder.provers import CircuitInput, NullProver, RemoteProver


INPUTS = [
    CircuitInput(name="ethAddr", value="0x5615deb798bb3e4dfa0139dfa1b3d433cc23b72f", type="bytes20", max_length=20),
    CircuitInput(name="accountSalt", value="0x01", type="bytes32", max_length=32),
]

SNARKJS_RESPONSE = {
    "proof": {
        "pi_a": ["1", "2", "1"],
        "pi_b": [["3", "4"], ["5", "6"], ["1", "0"]],
        "pi_c": ["7", "8", "1"],
        "protocol": "groth16",
        "curve": "bn128",
    },
    "publicSignals": ["11", "12"],
}


def _remote(handler, **kwargs) -> RemoteProver:
    return RemoteProver(
        "https://prover.test",
        "zkemail/guardian_accept@v1",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_circuit_input_serialization():
    assert INPUTS[1].to_dict() == {"name": "accountSalt", "value": "0x01", "type": "bytes32", "maxLength": 32}


def test_null_prover_returns_encodable_placeholder():
    proof = NullProver().prove("raw email", INPUTS)

    assert len(encode_groth16(proof)) == 514
    assert proof.public_signals == [int(INPUTS[0].value, 16), 1]


def test_null_prover_tolerates_sentinel_inputs():
    proof = NullProver().prove("raw email", [CircuitInput("accountSalt", "0x", "bytes32", 32)])
    assert proof.public_signals == [0]


def test_remote_prover_posts_email_and_inputs():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json=SNARKJS_RESPONSE)

    proof = _remote(handler).prove("From: alice@example.com\r\n\r\nhi", INPUTS)

    assert captured["path"] == "/prove"
    assert captured["body"]["blueprint"] == "zkemail/guardian_accept@v1"
    assert captured["body"]["email"].startswith("From: alice@example.com")
    assert captured["body"]["externalInputs"][0]["name"] == "ethAddr"
    assert proof == Groth16Proof(pi_a=(1, 2), pi_b=((3, 4), (5, 6)), pi_c=(7, 8), public_signals=[11, 12])


def test_remote_prover_sends_bearer_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json=SNARKJS_RESPONSE)

    prover = _remote(handler, api_key="secret")
    prover.prove("raw", INPUTS)
    prover.close()
    assert seen["auth"] == "Bearer secret"


@pytest.mark.parametrize(
    "response, message",
    [
        (httpx.Response(503, text="busy"), "HTTP 503"),
        (httpx.Response(200, text="not json"), "invalid JSON"),
        (httpx.Response(200, json=["unexpected"]), "non-object"),
        (httpx.Response(200, json={"proof": {"pi_a": ["1", "2"]}}), "malformed proof"),
    ],
)
def test_remote_prover_failures(response, message):
    prover = _remote(lambda request: response)
    with pytest.raises(ProverFailure, match=message):
        prover.prove("raw", INPUTS)


def test_remote_prover_network_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProverFailure, match="unreachable"):
        _remote(handler).prove("raw", INPUTS)
