"""Structural checks for written EmailProof artifacts."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

from ..builder.groth16 import decode_groth16
from ..builder.identifiers import is_sentinel


SENTINEL_FIELDS = ("publicKeyHash", "accountSalt", "proof")


def default_schema_path() -> Path:
    return Path(__file__).resolve().parents[1] / "schema" / "email_proof.schema.json"


def definition_validator(schema: dict[str, Any], definition: str) -> Draft202012Validator:
    """Build a validator for one ``$defs`` entry of ``schema``."""

    return Draft202012Validator({"$ref": f"#/$defs/{definition}", "$defs": schema["$defs"]})


def schema_errors(validator: Draft202012Validator, document: Any) -> list[str]:
    errors = sorted(validator.iter_errors(document), key=lambda err: list(err.path))
    return [f"{list(error.path)}: {error.message}" for error in errors]


@dataclass
class RecordReport:
    """Submittability of one EmailProof record."""

    key: str
    unsubmittable: list[str] = field(default_factory=list)

    @property
    def submittable(self) -> bool:
        return not self.unsubmittable


def check_email_proof(key: str, record: dict[str, Any]) -> RecordReport:
    """Decode the proof and list fields still holding the ``"0x"`` sentinel.

    Raises:
        ValueError: If a non-sentinel proof is not a valid 256-byte encoding.
    """

    report = RecordReport(key=key)
    for name in SENTINEL_FIELDS:
        if is_sentinel(record.get(name)):
            report.unsubmittable.append(name)

    if not is_sentinel(record.get("proof")):
        try:
            decode_groth16(record["proof"])
        except ValueError as exc:
            raise ValueError(f"{key}: {exc}") from exc
    if record.get("isCodeExist") is not True:
        report.unsubmittable.append("isCodeExist")
    return report


__all__ = [
    "RecordReport",
    "SENTINEL_FIELDS",
    "check_email_proof",
    "default_schema_path",
    "definition_validator",
    "schema_errors",
]
