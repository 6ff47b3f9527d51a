"""Header extraction for raw guardian approval emails.

Lookups work on the raw message text rather than a parsed ``EmailMessage`` so
that folding, CRLF/LF line endings and the byte order of repeated headers
(relays frequently add a second DKIM signature) are preserved exactly.  Only
the header section, up to the first blank line, is ever scanned.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timezone
from email.errors import HeaderParseError
from email.header import decode_header, make_header

from dateutil import parser as date_parser

from .errors import MissingHeader


FALLBACK_COMMAND = "Accept guardian"

_FOLD = re.compile(r"(?:\r?\n)+[ \t]+")
_SECTION_BREAK = re.compile(r"\r?\n\r?\n")
_BRACKETED = re.compile(r"<([^<>\s]+@[^<>\s]+)>")
_BARE_ADDRESS = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
_DATE_COMMENT = re.compile(r"\([^)]*\)")
_EPOCH_SECONDS = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class DkimMetadata:
    """Signing domain and selector of a DKIM-Signature header."""

    domain: str
    selector: str

    def __post_init__(self) -> None:
        if not self.domain or not self.selector:
            raise MissingHeader("DKIM metadata requires both d= and s= tags")

    @property
    def record_name(self) -> str:
        return f"{self.selector}._domainkey.{self.domain}"


def unfold(header_block: str) -> str:
    """Collapse RFC 5322 folding (line breaks followed by whitespace) to a space."""

    return _FOLD.sub(" ", header_block)


def header_section(raw_message: str) -> str:
    """Return the text preceding the header/body separator."""

    return _SECTION_BREAK.split(raw_message, maxsplit=1)[0]


def _body(raw_message: str) -> str | None:
    parts = _SECTION_BREAK.split(raw_message, maxsplit=1)
    return parts[1] if len(parts) == 2 else None


def first_header(raw_message: str, name: str) -> str | None:
    """Return the unfolded value of the first ``name:`` header, if any."""

    pattern = re.compile(
        rf"^{re.escape(name)}:([^\r\n]*(?:\r?\n[ \t][^\r\n]*)*)",
        re.IGNORECASE | re.MULTILINE,
    )
    match = pattern.search(header_section(raw_message))
    if match is None:
        return None
    return unfold(match.group(1)).strip()


def tag_value(header_value: str, tag: str) -> str | None:
    """Scan a ``tag=value;`` header for ``tag`` (case-insensitive)."""

    match = re.search(rf"(?:^|[;\s]){re.escape(tag)}=([^;\s]+)", header_value, re.IGNORECASE)
    return match.group(1) if match else None


def extract_dkim_metadata(raw_message: str) -> DkimMetadata:
    """Extract ``d=``/``s=`` from the first DKIM-Signature header.

    Raises:
        MissingHeader: If the header is absent or either tag is missing.
    """

    value = first_header(raw_message, "DKIM-Signature")
    if value is None:
        raise MissingHeader("missing DKIM-Signature header")

    domain = tag_value(value, "d")
    selector = tag_value(value, "s")
    if not domain or not selector:
        raise MissingHeader("cannot parse d=/s= from DKIM-Signature")
    return DkimMetadata(domain=domain.lower(), selector=selector)


def extract_sender(raw_message: str) -> str | None:
    value = first_header(raw_message, "From")
    if not value:
        return None

    bracketed = _BRACKETED.search(value)
    if bracketed:
        return bracketed.group(1).lower()
    bare = _BARE_ADDRESS.search(value)
    return bare.group(0).lower() if bare else None


def extract_arc_timestamp(raw_message: str) -> int | None:
    value = first_header(raw_message, "ARC-Seal")
    if value is None:
        return None
    stamp = tag_value(value, "t")
    if stamp is None or not _EPOCH_SECONDS.fullmatch(stamp):
        return None
    return int(stamp)


def extract_message_id(raw_message: str) -> str | None:
    value = first_header(raw_message, "Message-ID")
    return value or None


def extract_date(raw_message: str) -> int | None:
    """Parse the ``Date:`` header into epoch seconds (naive dates are UTC).

    Dates before the epoch are treated as absent.
    """

    value = first_header(raw_message, "Date")
    if not value:
        return None
    try:
        parsed = date_parser.parse(_DATE_COMMENT.sub("", value).strip())
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    seconds = int(parsed.timestamp())
    return seconds if seconds >= 0 else None


def _decode_words(value: str) -> str:
    try:
        return str(make_header(decode_header(value)))
    except (HeaderParseError, LookupError, UnicodeDecodeError):
        return value


def extract_command(raw_message: str) -> str:
    """Return the Subject, else the first body line, else a fixed fallback."""

    subject = first_header(raw_message, "Subject")
    if subject:
        return _decode_words(subject).strip()

    lines = (_body(raw_message) or "").splitlines()
    if lines and lines[0].strip():
        return lines[0].strip()
    return FALLBACK_COMMAND


@dataclass(frozen=True)
class RawEmail:
    """An input message and the header fields the pipeline reads from it."""

    text: str
    source: str
    sender: str | None
    subject: str | None
    message_id: str | None
    date: int | None

    @classmethod
    def parse(cls, data: bytes | str, *, source: str = "<memory>") -> "RawEmail":
        text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
        subject = first_header(text, "Subject")
        return cls(
            text=text,
            source=source,
            sender=extract_sender(text),
            subject=_decode_words(subject) if subject else None,
            message_id=extract_message_id(text),
            date=extract_date(text),
        )

    @property
    def headers(self) -> str:
        return header_section(self.text)


__all__ = [
    "DkimMetadata",
    "FALLBACK_COMMAND",
    "RawEmail",
    "extract_arc_timestamp",
    "extract_command",
    "extract_date",
    "extract_dkim_metadata",
    "extract_message_id",
    "extract_sender",
    "first_header",
    "header_section",
    "tag_value",
    "unfold",
]
