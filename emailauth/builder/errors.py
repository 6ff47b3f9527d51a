"""Failure taxonomy for the proof builder.

Per-email failures are raised by the pipeline stages and contained at the
email-processing boundary in :mod:`emailauth.builder.assembler`.
"""

from __future__ import annotations


class EmailAuthError(Exception):
    """Base class for proof builder failures."""


class MissingHeader(EmailAuthError, ValueError):
    """A required header (From, DKIM-Signature) is absent or malformed."""


class DnsResolutionFailure(EmailAuthError, LookupError):
    """The DKIM key record could not be resolved or carried no ``p=`` tag."""


class MissingGuardian(EmailAuthError, LookupError):
    """The sender has no authenticator address in the guardian directory."""


class ProverFailure(EmailAuthError, RuntimeError):
    """The prover could not produce a proof for an email."""


class EncodingOverflow(EmailAuthError, ValueError):
    """A Groth16 field element does not fit the fixed 32-byte width."""


class ConfigurationLoadFailure(EmailAuthError, ValueError):
    """A configuration document is missing or malformed."""


__all__ = [
    "EmailAuthError",
    "MissingHeader",
    "DnsResolutionFailure",
    "MissingGuardian",
    "ProverFailure",
    "EncodingOverflow",
    "ConfigurationLoadFailure",
]
