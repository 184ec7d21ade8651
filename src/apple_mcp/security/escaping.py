"""Escaping rules and a line builder for AppleScript and SQL text.

String concatenation into interpreter source is unavoidable here (osascript
and sqlite3 only accept text), so every interpolated value goes through this
module. ``ScriptFragment`` and ``ScriptIdentifier`` are ``NewType`` wrappers:
a type checker rejects a plain ``str`` wherever one of them is expected.
"""

from __future__ import annotations

import re
from string import Template
from typing import NewType

ScriptFragment = NewType("ScriptFragment", str)
ScriptIdentifier = NewType("ScriptIdentifier", str)

# Order matters: the backslash must be escaped before anything that adds one.
_SCRIPT_ESCAPES: tuple[tuple[str, str], ...] = (
    ("\\", "\\\\"),
    ('"', '\\"'),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
)
_SCRIPT_UNESCAPES = {"\\": "\\", '"': '"', "n": "\n", "r": "\r", "t": "\t"}
_SCRIPT_ESCAPE_SEQUENCE_RE = re.compile(r'\\(["\\nrt])')
_IDENTIFIER_STRIP_RE = re.compile(r"[^A-Za-z0-9_]")


def escape_script_string(value: str) -> ScriptFragment:
    """Escape ``value`` for use inside a double-quoted AppleScript literal."""
    escaped = value
    for char, replacement in _SCRIPT_ESCAPES:
        escaped = escaped.replace(char, replacement)
    return ScriptFragment(escaped)


def unescape_script_string(fragment: str) -> str:
    """Exact inverse of :func:`escape_script_string`."""
    return _SCRIPT_ESCAPE_SEQUENCE_RE.sub(lambda m: _SCRIPT_UNESCAPES[m.group(1)], fragment)


def quote_script_string(value: str) -> ScriptFragment:
    """Return ``value`` as a complete, quoted AppleScript string literal."""
    return ScriptFragment(f'"{escape_script_string(value)}"')


def escape_identifier(value: str) -> ScriptIdentifier:
    """Strip every character that could leave a bare identifier context."""
    return ScriptIdentifier(_IDENTIFIER_STRIP_RE.sub("", value))


def escape_sql_string(value: str) -> str:
    return value.replace("'", "''")


def escape_sql_identifier(value: str) -> str:
    return _IDENTIFIER_STRIP_RE.sub("", value)


class AppleScriptBuilder:
    """Accumulate script lines.

    The builder never escapes anything itself. Values must arrive as
    ``ScriptFragment``/``ScriptIdentifier`` (or ints) produced by the functions
    above; ``raw`` is reserved for fixed literals.
    """

    def __init__(self) -> None:
        self._lines: list[str] = []

    def tell(self, application: ScriptFragment) -> AppleScriptBuilder:
        self._lines.append(f'tell application "{application}"')
        return self

    def end_tell(self) -> AppleScriptBuilder:
        self._lines.append("end tell")
        return self

    def set_variable(self, name: ScriptIdentifier, value: ScriptFragment) -> AppleScriptBuilder:
        self._lines.append(f'set {name} to "{value}"')
        return self

    def line(
        self,
        template: str,
        **values: ScriptFragment | ScriptIdentifier | int,
    ) -> AppleScriptBuilder:
        """Append ``template`` with ``$name`` placeholders filled from ``values``.

        ``$`` placeholders are used because AppleScript record literals need braces.
        """
        self._lines.append(Template(template).substitute(values))
        return self

    def raw(self, line: str) -> AppleScriptBuilder:
        self._lines.append(line)
        return self

    def build(self) -> str:
        return "\n".join(self._lines)
