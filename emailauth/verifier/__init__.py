"""Verifier package for guardian email-auth proof artifacts."""

from .proof_check import (  # noqa: F401
    RecordReport,
    check_email_proof,
    default_schema_path,
)
from .verify_proofs import verify_documents  # noqa: F401
