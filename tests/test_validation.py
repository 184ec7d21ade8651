from __future__ import annotations

import math

import pytest

from apple_mcp.errors import ValidationError
from apple_mcp.security.validation import (
    EmailAddress,
    PhoneNumber,
    contains_dangerous_pattern,
    sanitize_limit,
    validate_email,
    validate_file_path,
    validate_folder_name,
    validate_message_content,
    validate_note_content,
    validate_phone_number,
    validate_search_query,
)


def test_phone_number_is_normalized() -> None:
    phone = validate_phone_number("+1 (555) 123-4567")
    assert isinstance(phone, PhoneNumber)
    assert phone.value == "+15551234567"
    assert str(phone) == "+15551234567"


@pytest.mark.parametrize(
    "raw",
    [
        "555-1234",  # too short
        "1" * 21,  # too long
        "555-123-4567; rm",  # forbidden characters
        12345678901,
        None,
    ],
)
def test_phone_number_rejections(raw: object) -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate_phone_number(raw)
    assert exc_info.value.field == "phoneNumber"


def test_phone_number_length_bounds() -> None:
    assert validate_phone_number("5" * 10).value == "5" * 10
    assert validate_phone_number("5" * 20).value == "5" * 20


def test_email_accepts_and_trims() -> None:
    email = validate_email("  someone@example.com ")
    assert isinstance(email, EmailAddress)
    assert email.value == "someone@example.com"


@pytest.mark.parametrize(
    "raw",
    [
        "not-an-email",
        "a@b",
        "two@@example.com",
        '"quoted"@example.com',
        "x@example.com\nBcc: y@example.com",
        "a" * 250 + "@example.com",
    ],
)
def test_email_rejections(raw: str) -> None:
    with pytest.raises(ValidationError, match="Invalid email address"):
        validate_email(raw, field="to")


def test_search_query_is_trimmed() -> None:
    assert validate_search_query("  invoice  ").value == "invoice"


@pytest.mark.parametrize("raw", ["", "   ", "x" * 501])
def test_search_query_length_rules(raw: str) -> None:
    with pytest.raises(ValidationError):
        validate_search_query(raw)


def test_search_query_max_length_is_accepted() -> None:
    assert len(validate_search_query("x" * 500).value) == 500


@pytest.mark.parametrize(
    "text",
    [
        'tell application "System Events" to keystroke "q"',
        "DO SHELL SCRIPT \"ls\"",
        "run osascript now",
        "eval(payload)",
        "exec something",
        "os.system(cmd)",
        "delete from messages",
        "DROP TABLE handle",
        "UPDATE message SET text = ''",
        "insert into chat values (1)",
    ],
)
def test_dangerous_patterns_are_detected(text: str) -> None:
    assert contains_dangerous_pattern(text)
    with pytest.raises(ValidationError, match="forbidden patterns"):
        validate_message_content(text)


@pytest.mark.parametrize(
    "text",
    ["execScript(x)", "document.evaluate(x)", "window.eval_fn()", "run execute", "Let's evaluate tomorrow"],
)
def test_eval_and_exec_match_inside_words(text: str) -> None:
    with pytest.raises(ValidationError, match="forbidden patterns"):
        validate_search_query(text)


@pytest.mark.parametrize(
    "text",
    ["Please update the settings", "The system works", "Lunch at noon?"],
)
def test_ordinary_text_is_not_flagged(text: str) -> None:
    assert not contains_dangerous_pattern(text)
    assert validate_message_content(text).value == text


@pytest.mark.parametrize("raw", ["hello\x00world", "bell\x07", "esc\x1b[2J", "del\x7f"])
def test_control_characters_are_rejected(raw: str) -> None:
    with pytest.raises(ValidationError, match="control characters"):
        validate_message_content(raw)
    with pytest.raises(ValidationError, match="control characters"):
        validate_search_query(raw)


def test_tab_and_line_breaks_are_allowed() -> None:
    assert validate_message_content("a\tb\r\nc").value == "a\tb\r\nc"


def test_message_content_respects_max_length() -> None:
    assert validate_message_content("a" * 20, max_length=20).value == "a" * 20
    with pytest.raises(ValidationError):
        validate_message_content("a" * 21, max_length=20)


def test_message_content_rejects_empty() -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate_message_content("  ", field="body")
    assert exc_info.value.field == "body"


def test_note_content_skips_pattern_scan_but_caps_length() -> None:
    assert validate_note_content("exec this later").value == "exec this later"
    with pytest.raises(ValidationError, match="too long"):
        validate_note_content("n" * 50_001)


@pytest.mark.parametrize("raw", ["../etc/passwd", "/tmp/a/../b", "x" * 1025])
def test_file_path_rejections(raw: str) -> None:
    with pytest.raises(ValidationError):
        validate_file_path(raw)


def test_file_path_accepts_plain_path() -> None:
    assert validate_file_path("/Users/me/Documents/a.txt").value == "/Users/me/Documents/a.txt"


@pytest.mark.parametrize("raw", ["", "a/b", "a\\b", "a:b", "a*b", "a?b", 'a"b', "a<b", "a>b", "a|b"])
def test_folder_name_rejections(raw: str) -> None:
    with pytest.raises(ValidationError, match="Invalid folder name"):
        validate_folder_name(raw)


def test_folder_name_accepts_spaces_and_unicode() -> None:
    assert validate_folder_name("Work Projects – 2025").value == "Work Projects – 2025"


@pytest.mark.parametrize(
    ("value", "maximum", "expected"),
    [
        (None, 100, 10),
        ("abc", 100, 10),
        (math.nan, 100, 10),
        (0, 100, 10),
        (-5, 100, 10),
        (True, 100, 10),
        (7.9, 100, 7),
        ("25", 100, 25),
        (500, 100, 100),
        (math.inf, 50, 50),
        (42, 100, 42),
    ],
)
def test_sanitize_limit(value: object, maximum: int, expected: int) -> None:
    assert sanitize_limit(value, maximum) == expected
