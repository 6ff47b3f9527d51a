"""Assemble EmailProof / EmailAuthMsg records from guardian approval emails.

Each email is processed to completion before the next one starts.  Failures
that concern a single email are contained in :meth:`ProofAssembler.build`:
missing headers, unknown guardians and prover errors skip the email, while an
unresolvable DKIM key, a missing salt or an oversized proof element only
degrade the affected field to the ``"0x"`` sentinel.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable

from .config import (
    AuthenticatorAddress,
    CommandTemplate,
    EmailIdentity,
    GuardianDirectory,
    GuardianSaltStore,
    Identity,
    KeySpace,
)
from .dkim_keys import TxtResolver, resolve_public_key_hash
from .errors import EncodingOverflow, MissingGuardian, MissingHeader, ProverFailure
from .groth16 import encode_groth16
from .headers import RawEmail, extract_arc_timestamp, extract_command, extract_dkim_metadata
from .identifiers import SENTINEL, NullifierScheme, compute_template_id, is_sentinel
from .provers import CircuitInput, Prover


logger = logging.getLogger(__name__)


@dataclass
class EmailProof:
    domain_name: str
    public_key_hash: str
    timestamp: int
    masked_command: str
    email_nullifier: str
    account_salt: str
    is_code_exist: bool = True
    proof: str = SENTINEL

    def to_dict(self) -> dict[str, Any]:
        return {
            "domainName": self.domain_name,
            "publicKeyHash": self.public_key_hash,
            "timestamp": self.timestamp,
            "maskedCommand": self.masked_command,
            "emailNullifier": self.email_nullifier,
            "accountSalt": self.account_salt,
            "isCodeExist": self.is_code_exist,
            "proof": self.proof,
        }


@dataclass
class EmailAuthMsg:
    template_id: str
    command_params: list[str]
    skipped_command_prefix: int
    proof: EmailProof

    def to_dict(self) -> dict[str, Any]:
        return {
            "templateId": self.template_id,
            "commandParams": list(self.command_params),
            "skippedCommandPrefix": self.skipped_command_prefix,
            "proof": self.proof.to_dict(),
        }


@dataclass
class AssembledProof:
    """Everything produced for one email, keyed by guardian identity."""

    key: Identity
    email_proof: EmailProof
    auth_msg: EmailAuthMsg
    source: str
    sender: EmailIdentity
    command: str
    authenticator: AuthenticatorAddress | None = None
    degraded: list[str] = field(default_factory=list)

    def package(self, addresses: dict[str, Any], account: str) -> dict[str, Any]:
        """Return the ``{emailAuthMsg, metadata}`` document for submission tooling."""

        return {
            "emailAuthMsg": self.auth_msg.to_dict(),
            "metadata": {
                "email": self.sender.value,
                "emailAuth": self.authenticator.value if self.authenticator else None,
                "key": str(self.key),
                "walletAddress": account,
                "dkimRegistry": addresses.get("UserOverrideableDKIMRegistry"),
                "verifier": addresses.get("Groth16Verifier"),
                "source": self.source,
                "command": self.command,
                "generatedAt": datetime.now(timezone.utc).isoformat(),
                "status": "degraded" if self.degraded else "generated",
                "degraded": list(self.degraded),
            },
        }


class ProofAssembler:
    """Turn parsed emails into proof records for one wallet and template."""

    def __init__(
        self,
        *,
        resolver: TxtResolver,
        salts: GuardianSaltStore,
        nullifier_scheme: NullifierScheme,
        account: str,
        template: CommandTemplate,
        guardians: GuardianDirectory | None = None,
        prover: Prover | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.resolver = resolver
        self.salts = salts
        self.nullifier_scheme = nullifier_scheme
        self.account = account
        self.template = template
        self.guardians = guardians or GuardianDirectory()
        self.prover = prover
        self.clock = clock

    @property
    def key_space(self) -> KeySpace:
        return self.salts.key_space

    @property
    def masked_command(self) -> str:
        return self.template.render(self.account)

    def _timestamp(self, raw: RawEmail) -> int:
        arc_timestamp = extract_arc_timestamp(raw.text)
        if arc_timestamp is not None:
            return arc_timestamp
        if raw.date is not None:
            return raw.date
        return int(self.clock())

    def _identity_for(self, sender: EmailIdentity, authenticator: AuthenticatorAddress | None) -> Identity:
        if self.key_space is KeySpace.EMAIL:
            return sender
        if authenticator is None:
            raise MissingGuardian(f"sender {sender} not in guardian directory")
        return authenticator

    def _prove(self, raw: RawEmail, salt: str, degraded: list[str]) -> str:
        if self.prover is None:
            return SENTINEL

        inputs = [
            CircuitInput(name="ethAddr", value=self.account.lower(), type="bytes20", max_length=20),
            CircuitInput(name="accountSalt", value=salt, type="bytes32", max_length=32),
        ]
        proof = self.prover.prove(raw.text, inputs)
        try:
            return encode_groth16(proof)
        except EncodingOverflow as exc:
            logger.error("%s: cannot encode proof: %s", raw.source, exc)
            degraded.append("proof")
            return SENTINEL

    def assemble(self, raw: RawEmail) -> AssembledProof:
        """Build the proof record for a single email.

        Raises:
            MissingHeader: The email has no usable From or DKIM-Signature header.
            MissingGuardian: The sender cannot be mapped to an authenticator
                address while salts are keyed by authenticator.
            ProverFailure: The configured prover failed.
        """

        if raw.sender is None:
            raise MissingHeader("no From address found")
        sender = EmailIdentity(raw.sender)
        dkim = extract_dkim_metadata(raw.text)
        authenticator = self.guardians.authenticator_for(sender)
        key = self._identity_for(sender, authenticator)
        degraded: list[str] = []

        public_key_hash = resolve_public_key_hash(dkim.selector, dkim.domain, self.resolver)
        if is_sentinel(public_key_hash):
            logger.warning("%s: no public key hash for %s, continuing degraded", raw.source, dkim.record_name)
            degraded.append("publicKeyHash")

        timestamp = self._timestamp(raw)

        salt = self.salts.lookup(key)
        if salt is None:
            logger.warning("%s: no salt for %s, continuing degraded", raw.source, key)
            degraded.append("accountSalt")
            salt = SENTINEL

        nullifier = self.nullifier_scheme.derive(
            message_id=raw.message_id,
            header_text=raw.headers,
            account_salt=salt,
            fallback=f"{sender}{timestamp}",
        )

        masked_command = self.masked_command
        command = extract_command(raw.text)
        if masked_command not in command:
            logger.debug("%s: subject %r differs from masked command %r", raw.source, command, masked_command)

        email_proof = EmailProof(
            domain_name=dkim.domain,
            public_key_hash=public_key_hash,
            timestamp=timestamp,
            masked_command=masked_command,
            email_nullifier=nullifier,
            account_salt=salt,
            is_code_exist=True,
            proof=self._prove(raw, salt, degraded),
        )
        auth_msg = EmailAuthMsg(
            template_id=compute_template_id(self.template.index),
            command_params=[self.account],
            skipped_command_prefix=0,
            proof=email_proof,
        )
        logger.debug("%s: domain=%s selector=%s nullifier=%s", raw.source, dkim.domain, dkim.selector, nullifier)
        return AssembledProof(
            key=key,
            email_proof=email_proof,
            auth_msg=auth_msg,
            source=raw.source,
            sender=sender,
            command=command,
            authenticator=authenticator,
            degraded=degraded,
        )

    def build(self, paths: Iterable[Path]) -> dict[str, AssembledProof]:
        """Process ``paths`` in order; later emails for the same key win."""

        results: dict[str, AssembledProof] = {}
        for path in paths:
            logger.info("Processing %s", path.name)
            try:
                raw = RawEmail.parse(path.read_bytes(), source=path.name)
                assembled = self.assemble(raw)
            except (MissingHeader, MissingGuardian) as exc:
                logger.warning("%s: skipped: %s", path.name, exc)
                continue
            except ProverFailure as exc:
                logger.error("%s: skipped, prover failed: %s", path.name, exc)
                continue
            except ValueError as exc:
                logger.error("%s: skipped, malformed content: %s", path.name, exc)
                continue
            except OSError as exc:
                logger.warning("%s: skipped, unreadable: %s", path.name, exc)
                continue

            results[str(assembled.key)] = assembled
            logger.info("%s: extracted %s", path.name, assembled.key)
        return results


def discover_emails(emails_dir: Path) -> list[Path]:
    """Return the ``.eml`` files of ``emails_dir`` in directory order."""

    return [path for path in emails_dir.iterdir() if path.is_file() and path.suffix.lower() == ".eml"]


__all__ = [
    "AssembledProof",
    "EmailAuthMsg",
    "EmailProof",
    "ProofAssembler",
    "discover_emails",
]
