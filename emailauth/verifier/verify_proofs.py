"""Verification routines for written guardian proof artifacts."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Iterator, Sequence

from .proof_check import (
    RecordReport,
    check_email_proof,
    default_schema_path,
    definition_validator,
    schema_errors,
)


def _load_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _documents(path: Path) -> Iterator[tuple[Path, Any]]:
    if path.is_dir():
        for child in sorted(path.glob("*.json")):
            yield child, _load_json(child)
    else:
        yield path, _load_json(path)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Verify guardian EmailProof artifacts")
    parser.add_argument("--proofs", type=Path, required=True, help="Proof map, package file or package directory")
    parser.add_argument("--schema", type=Path, default=default_schema_path())
    parser.add_argument("--strict", action="store_true", help="Fail when any record holds a sentinel value")
    return parser.parse_args(argv)


def verify_documents(path: Path, schema: dict[str, Any]) -> list[RecordReport]:
    """Validate every artifact under ``path`` and report per-record submittability.

    Raises:
        ValueError: On schema violations or undecodable proofs.
    """

    package_validator = definition_validator(schema, "ProofPackage")
    map_validator = definition_validator(schema, "ProofMap")

    reports: list[RecordReport] = []
    for source, document in _documents(path):
        if isinstance(document, dict) and "emailAuthMsg" in document:
            errors = schema_errors(package_validator, document)
            records = {source.stem: document["emailAuthMsg"]["proof"]} if not errors else {}
        else:
            errors = schema_errors(map_validator, document)
            records = document if not errors else {}
        if errors:
            raise ValueError(f"{source.name}: " + "; ".join(errors))
        reports.extend(check_email_proof(key, record) for key, record in records.items())
    return reports


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    if not args.proofs.exists():
        raise SystemExit(f"{args.proofs} not found")

    try:
        reports = verify_documents(args.proofs, _load_json(args.schema))
    except (ValueError, KeyError) as exc:
        raise SystemExit(str(exc)) from exc

    unsubmittable = {report.key: report.unsubmittable for report in reports if not report.submittable}
    if args.strict and unsubmittable:
        raise SystemExit(
            "Records not submittable: "
            + "; ".join(f"{key} ({', '.join(fields)})" for key, fields in unsubmittable.items())
        )

    print(
        json.dumps(
            {
                "status": "degraded" if unsubmittable else "ok",
                "records": len(reports),
                "unsubmittable": unsubmittable,
            },
            indent=2,
        )
    )


if __name__ == "__main__":
    main()
