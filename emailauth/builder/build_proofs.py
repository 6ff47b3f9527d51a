"""Entrypoint that builds guardian EmailProof artifacts from a directory of .eml files."""

from __future__ import annotations

import argparse
import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from git.exc import InvalidGitRepositoryError, NoSuchPathError

from .assembler import AssembledProof, ProofAssembler, discover_emails
from .config import (
    ADDRESSES_FILE,
    GUARDIANS_FILE,
    SALTS_FILE,
    TEMPLATES_FILE,
    GuardianDirectory,
    GuardianSaltStore,
    KeySpace,
    ensure_configuration,
    load_mapping,
    load_template,
)
from .dkim_keys import DnsPythonTxtResolver
from .errors import ConfigurationLoadFailure
from .git_anchor import commit_proof_run
from .identifiers import NullifierScheme
from .provers import NullProver, Prover, RemoteProver


logger = logging.getLogger(__name__)

MODE_PROOFS = "proofs"
MODE_AUTH_MSG = "auth-msg"
DEFAULT_PROOFS_FILE = "EmailProofs.json"
API_KEY_ENV = "EMAILAUTH_PROVER_API_KEY"


@dataclass
class BuilderConfig:
    emails_dir: Path
    config_dir: Path
    salts: Path
    guardians: Path
    addresses: Path
    templates: Path
    mode: str
    output: Path
    output_dir: Path
    nullifier_scheme: NullifierScheme
    key_space: KeySpace
    account: str
    template_index: int
    prover: str
    prover_url: str | None
    prover_blueprint: str
    prover_api_key: str | None
    git_repo: Path | None
    git_branch: str | None
    git_message: str
    log_level: str


def _parse_args(argv: Sequence[str] | None) -> BuilderConfig:
    parser = argparse.ArgumentParser(description="Build guardian EmailProof artifacts from raw emails")
    parser.add_argument("--emails-dir", type=Path, default=Path("emails"))
    parser.add_argument("--config-dir", type=Path, default=Path("config"))
    parser.add_argument("--salts", type=Path, help=f"Guardian salt mapping (default: <config-dir>/{SALTS_FILE})")
    parser.add_argument("--guardians", type=Path, help=f"Email to EmailAuth mapping (default: <config-dir>/{GUARDIANS_FILE})")
    parser.add_argument("--addresses", type=Path, help=f"Deployed contract addresses (default: <config-dir>/{ADDRESSES_FILE})")
    parser.add_argument("--templates", type=Path, help=f"Command templates (default: <config-dir>/{TEMPLATES_FILE})")
    parser.add_argument(
        "--mode",
        choices=[MODE_PROOFS, MODE_AUTH_MSG],
        default=MODE_PROOFS,
        help="Write one EmailProof map, or one EmailAuthMsg package per guardian",
    )
    parser.add_argument("--output", type=Path, default=Path("out") / DEFAULT_PROOFS_FILE)
    parser.add_argument("--output-dir", type=Path, default=Path("proofs"))
    parser.add_argument(
        "--nullifier-scheme",
        required=True,
        choices=[scheme.value for scheme in NullifierScheme],
        help="Nullifier derivation agreed with the on-chain template",
    )
    parser.add_argument(
        "--key-space",
        choices=[space.value for space in KeySpace],
        default=KeySpace.EMAIL.value,
        help="Identity type keying salts and output records",
    )
    parser.add_argument("--account", required=True, help="Smart-contract wallet being recovered")
    parser.add_argument("--template-index", type=int, default=0)
    parser.add_argument("--prover", choices=["none", "null", "remote"], default="none")
    parser.add_argument("--prover-url", help="Base URL of the remote proving service")
    parser.add_argument("--prover-blueprint", default="zkemail/guardian_accept@v1")
    parser.add_argument("--prover-api-key", default=os.environ.get(API_KEY_ENV))
    parser.add_argument("--git-repo", type=Path, help="Repository used to record written artifacts")
    parser.add_argument("--git-branch", default="main")
    parser.add_argument("--git-message", default="Email proofs {run_id}")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    args = parser.parse_args(argv)
    if args.prover == "remote" and not args.prover_url:
        parser.error("--prover-url is required with --prover remote")

    config_dir = args.config_dir
    return BuilderConfig(
        emails_dir=args.emails_dir,
        config_dir=config_dir,
        salts=args.salts or config_dir / SALTS_FILE,
        guardians=args.guardians or config_dir / GUARDIANS_FILE,
        addresses=args.addresses or config_dir / ADDRESSES_FILE,
        templates=args.templates or config_dir / TEMPLATES_FILE,
        mode=args.mode,
        output=args.output,
        output_dir=args.output_dir,
        nullifier_scheme=NullifierScheme(args.nullifier_scheme),
        key_space=KeySpace(args.key_space),
        account=args.account,
        template_index=args.template_index,
        prover=args.prover,
        prover_url=args.prover_url,
        prover_blueprint=args.prover_blueprint,
        prover_api_key=args.prover_api_key,
        git_repo=args.git_repo,
        git_branch=args.git_branch,
        git_message=args.git_message,
        log_level=args.log_level,
    )


def _build_prover(config: BuilderConfig) -> Prover | None:
    if config.prover == "null":
        return NullProver()
    if config.prover == "remote":
        assert config.prover_url is not None  # enforced by argument parsing
        return RemoteProver(config.prover_url, config.prover_blueprint, api_key=config.prover_api_key)
    return None


def write_proof_map(path: Path, results: dict[str, AssembledProof]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    document = {key: result.email_proof.to_dict() for key, result in results.items()}
    path.write_text(json.dumps(document, indent=2), encoding="utf-8")
    return path


def write_proof_packages(
    out_dir: Path,
    results: dict[str, AssembledProof],
    *,
    addresses: dict[str, Any],
    account: str,
) -> list[Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    for key, result in results.items():
        path = out_dir / f"{key}.json"
        path.write_text(json.dumps(result.package(addresses, account), indent=2), encoding="utf-8")
        written.append(path)
    return written


def main(argv: Sequence[str] | None = None) -> None:
    config = _parse_args(argv)
    logging.basicConfig(level=config.log_level, format="%(levelname)s %(name)s: %(message)s")

    if not config.emails_dir.is_dir():
        raise SystemExit(f"Email directory {config.emails_dir} not found")

    created = ensure_configuration(config.config_dir)
    run_id = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")

    addresses = load_mapping(config.addresses, "addresses")
    try:
        template = load_template(config.templates, config.template_index)
    except ConfigurationLoadFailure as exc:
        raise SystemExit(str(exc)) from exc

    assembler = ProofAssembler(
        resolver=DnsPythonTxtResolver(),
        salts=GuardianSaltStore.from_file(config.key_space, config.salts),
        guardians=GuardianDirectory.from_file(config.guardians),
        nullifier_scheme=config.nullifier_scheme,
        account=config.account,
        template=template,
        prover=_build_prover(config),
    )
    logger.info(
        "DKIM registry %s, verifier %s, wallet %s",
        addresses.get("UserOverrideableDKIMRegistry"),
        addresses.get("Groth16Verifier"),
        config.account,
    )

    emails = discover_emails(config.emails_dir)
    logger.info("Found %d email files in %s", len(emails), config.emails_dir)
    try:
        results = assembler.build(emails)
    finally:
        if isinstance(assembler.prover, RemoteProver):
            assembler.prover.close()

    if config.mode == MODE_AUTH_MSG:
        written = write_proof_packages(config.output_dir, results, addresses=addresses, account=config.account)
    else:
        written = [write_proof_map(config.output, results)]
    for path in written:
        logger.info("Wrote %s", path)

    degraded = {key: result.degraded for key, result in results.items() if result.degraded}
    git_info: dict[str, Any] | None = None
    if config.git_repo:
        try:
            git_info = commit_proof_run(
                config.git_repo,
                [path.resolve() for path in written],
                config.git_message.format(run_id=run_id),
                processed=list(results),
                degraded=degraded,
                branch=config.git_branch,
            )
        except (ValueError, InvalidGitRepositoryError, NoSuchPathError) as exc:
            raise SystemExit(f"Cannot record proofs in {config.git_repo}: {exc}") from exc

    summary = {
        "run_id": run_id,
        "mode": config.mode,
        "nullifier_scheme": config.nullifier_scheme.value,
        "key_space": config.key_space.value,
        "emails": len(emails),
        "processed": len(results),
        "degraded": degraded,
        "written": [str(path) for path in written],
        "created_config": [str(path) for path in created],
        "git": git_info,
    }
    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
