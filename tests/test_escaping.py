from __future__ import annotations

import pytest

from apple_mcp.security.escaping import (
    AppleScriptBuilder,
    escape_identifier,
    escape_script_string,
    escape_sql_identifier,
    escape_sql_string,
    quote_script_string,
    unescape_script_string,
)


def test_escape_script_string_handles_each_special_character() -> None:
    assert escape_script_string('say "hi"') == 'say \\"hi\\"'
    assert escape_script_string("C:\\path") == "C:\\\\path"
    assert escape_script_string("a\nb\rc\td") == "a\\nb\\rc\\td"


def test_backslash_is_escaped_before_quotes() -> None:
    # A trailing backslash must not swallow the closing quote of the literal.
    assert escape_script_string('\\"') == '\\\\\\"'


@pytest.mark.parametrize(
    "value",
    [
        "",
        "plain",
        'end quote" & do shell script "rm -rf ~',
        "\\n is not a newline",
        "mixed \\ \" \n \r \t all at once \\\\",
        "unicode ✓ stays",
    ],
)
def test_unescape_reverses_escape(value: str) -> None:
    assert unescape_script_string(escape_script_string(value)) == value


def test_quote_script_string_wraps_in_quotes() -> None:
    assert quote_script_string('a"b') == '"a\\"b"'


def test_identifier_and_sql_escaping() -> None:
    assert escape_identifier("my var; drop") == "myvardrop"
    assert escape_sql_identifier("chat.db`") == "chatdb"
    assert escape_sql_string("O'Brien") == "O''Brien"


def test_builder_assembles_lines_in_order() -> None:
    script = (
        AppleScriptBuilder()
        .tell(escape_script_string("Mail"))
        .set_variable(escape_identifier("subjectLine"), escape_script_string('He said "hi"'))
        .line("set maxCount to $limit", limit=5)
        .line("set target to $target", target=quote_script_string("x"))
        .raw("return subjectLine")
        .end_tell()
        .build()
    )
    assert script.splitlines() == [
        'tell application "Mail"',
        'set subjectLine to "He said \\"hi\\""',
        "set maxCount to 5",
        'set target to "x"',
        "return subjectLine",
        "end tell",
    ]


def test_builder_leaves_record_braces_alone() -> None:
    script = AppleScriptBuilder().line("return {status:$value}", value=quote_script_string("ok")).build()
    assert script == 'return {status:"ok"}'
