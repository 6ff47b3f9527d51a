from datetime import datetime, timezone

import pytest

from emailauth.builder.errors import MissingHeader
from emailauth.builder.headers import (
    FALLBACK_COMMAND,
    DkimMetadata,
    RawEmail,
    extract_arc_timestamp,
    extract_command,
    extract_date,
    extract_dkim_metadata,
    extract_sender,
    unfold,
)

from conftest import FIXTURE_DIR


def _message(*headers: str, body: str = "hello", newline: str = "\r\n") -> str:
    return newline.join(headers) + newline + newline + body + newline


@pytest.mark.parametrize(
    "block",
    [
        "DKIM-Signature: v=1;\r\n\td=example.com;\r\n  s=sel1",
        "Subject: one\n two\n\tthree",
        "X: a\n\n b",
        "X: a\r\n\r\n \t b\r\n",
        "no folding at all",
        "",
    ],
)
def test_unfold_is_idempotent(block):
    once = unfold(block)
    assert unfold(once) == once


def test_unfold_replaces_folds_with_single_space():
    assert unfold("a=1;\r\n        b=2;\n\tc=3") == "a=1; b=2; c=3"


@pytest.mark.parametrize("newline", ["\r\n", "\n"])
@pytest.mark.parametrize(
    "dkim",
    [
        "DKIM-Signature: v=1; a=rsa-sha256; d=example.com; s=sel1; b=abc",
        "DKIM-Signature: v=1; s=sel1; a=rsa-sha256;{nl}\td=example.com; bh=xyz=; b=abc",
        "dkim-signature: S=sel1;{nl}  D=example.com",
    ],
)
def test_dkim_extraction_handles_folding_and_tag_order(dkim, newline):
    raw = _message(dkim.format(nl=newline), "From: a@example.com", newline=newline)
    assert extract_dkim_metadata(raw) == DkimMetadata(domain="example.com", selector="sel1")


def test_dkim_extraction_selects_first_signature():
    raw = (FIXTURE_DIR / "alice_approval.eml").read_text()
    metadata = extract_dkim_metadata(raw)
    assert metadata == DkimMetadata(domain="example.com", selector="sel1")
    assert metadata.record_name == "sel1._domainkey.example.com"


def test_dkim_extraction_ignores_tags_of_other_headers():
    raw = _message(
        "DKIM-Signature: v=1; a=rsa-sha256; s=sel1; b=abc",
        "ARC-Message-Signature: i=1; d=google.com; s=arc",
    )
    with pytest.raises(MissingHeader, match="d=/s="):
        extract_dkim_metadata(raw)


def test_dkim_extraction_ignores_body():
    raw = _message("From: a@example.com", body="DKIM-Signature: d=example.com; s=sel1")
    with pytest.raises(MissingHeader, match="missing DKIM-Signature"):
        extract_dkim_metadata(raw)


def test_dkim_metadata_rejects_partial_construction():
    with pytest.raises(MissingHeader):
        DkimMetadata(domain="example.com", selector="")


@pytest.mark.parametrize(
    "from_header, expected",
    [
        ("From: Alice <Alice@Example.COM>", "alice@example.com"),
        ("From: \"Bob (bob@old.example)\" <bob@new.example>", "bob@new.example"),
        ("From: carol@example.net", "carol@example.net"),
        ("From: Dave\r\n <dave@example.io>", "dave@example.io"),
        ("From: undisclosed-recipients", None),
    ],
)
def test_extract_sender(from_header, expected):
    assert extract_sender(_message(from_header)) == expected


def test_extract_sender_uses_first_from_header():
    raw = _message("From: first@example.com", "From: second@example.com")
    assert extract_sender(raw) == "first@example.com"


def test_extract_sender_missing():
    assert extract_sender(_message("To: someone@example.com")) is None


def test_arc_timestamp():
    raw = (FIXTURE_DIR / "alice_approval.eml").read_text()
    assert extract_arc_timestamp(raw) == 1718000000
    assert extract_arc_timestamp(_message("From: a@example.com")) is None
    assert extract_arc_timestamp(_message("ARC-Seal: i=1; a=rsa-sha256; cv=none")) is None


@pytest.mark.parametrize("stamp", ["\u00b2", "\u0661\u0662", "-5", "12a"])
def test_arc_timestamp_requires_ascii_digits(stamp):
    assert extract_arc_timestamp(_message(f"ARC-Seal: i=1; t={stamp}; cv=none")) is None


def test_pre_epoch_date_is_treated_as_absent():
    assert extract_date(_message("Date: Wed, 31 Dec 1969 23:59:59 +0000")) is None
    assert extract_date(_message("Date: Thu, 01 Jan 1970 00:00:00 +0000")) == 0


def test_extract_command_prefers_subject():
    raw = _message("Subject: Accept guardian request for 0xabc", body="ignored")
    assert extract_command(raw) == "Accept guardian request for 0xabc"


def test_extract_command_decodes_encoded_words():
    raw = (FIXTURE_DIR / "bob_approval.eml").read_text()
    assert extract_command(raw) == "Accept guardian request"


def test_extract_command_falls_back_to_body_then_constant():
    assert extract_command(_message("From: a@example.com", body="Recover account")) == "Recover account"
    assert extract_command("From: a@example.com") == FALLBACK_COMMAND


def test_raw_email_header_view():
    raw = RawEmail.parse((FIXTURE_DIR / "bob_approval.eml").read_bytes(), source="bob_approval.eml")

    assert raw.source == "bob_approval.eml"
    assert raw.sender == "bob@example.org"
    assert raw.subject == "Accept guardian request"
    assert raw.message_id == "<bob-0001@example.org>"
    assert raw.date == int(datetime(2024, 7, 2, 10, tzinfo=timezone.utc).timestamp())
    assert raw.headers.endswith("(UTC)")
