"""
Value codec -- how a single secret value is written after ``KEY=``.

The first matching rule wins:

    1. value contains a newline     -> "line1\\nline2"   (newlines escaped)
    2. value looks like {...} JSON   -> '{"a": 1}'        (single quotes, verbatim)
    3. value has a space, " or '     -> "it's \\"x\\""     (double quotes, " escaped)
    4. anything else                 -> raw value

A double-quoted body holding an escaped newline is the rule 1 form and
only ``\\n`` is un-escaped; any other double-quoted body is the rule 3
form and only ``\\"`` is un-escaped.

Known lossy boundaries:

    - a value holding the two characters ``\\n`` literally that ends up
      double quoted reads back with a real newline there;
    - an unquoted value ending in a carriage return loses it, since the
      .env line it lands on reads as a CRLF line.

``is_lossy`` reports such values; nothing here tries to guess.
"""

from __future__ import annotations

import re

_ESCAPED_NEWLINE = re.compile(r"\\n")
_ESCAPED_QUOTE = re.compile(r'\\"')

# Quoted value followed by an inline comment: KEY="a b" # note
_QUOTED_WITH_COMMENT = re.compile(r"""^(["'])(.*)\1 +#.*$""", re.DOTALL)
# Unquoted value followed by an inline comment: KEY=abc # note
_INLINE_COMMENT = re.compile(r"^(.*?) +#.*$", re.DOTALL)


def encode(value: str) -> str:
    """Encode a raw value for the right-hand side of ``KEY=``.

    Args:
        value: Raw secret value. May contain newlines.

    Returns:
        The textual representation to store in the .env file.
    """
    if "\n" in value:
        return '"' + value.replace("\n", "\\n") + '"'
    if value.startswith("{") and value.endswith("}"):
        return "'" + value + "'"
    if " " in value or '"' in value or "'" in value:
        return '"' + value.replace('"', '\\"') + '"'
    return value


def decode(encoded: str) -> str:
    """Decode the right-hand side of ``KEY=`` back to the raw value.

    Double-quoted values have ``\\n`` (rule 1 form) or else ``\\"``
    (rule 3 form) un-escaped. Single-quoted and unquoted values pass
    through literally. Line endings are the caller's business: a CRLF
    ``\\r`` must already be gone from ``encoded``. Unquoted values lose
    surrounding spaces and a trailing `` # comment``, as dotenv does.

    Args:
        encoded: Text after the ``=`` sign, possibly spanning lines.

    Returns:
        The raw secret value.
    """
    text = encoded.strip(" ")
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        return _unquote(text[0], text[1:-1])

    commented = _QUOTED_WITH_COMMENT.match(text)
    if commented:
        return _unquote(commented.group(1), commented.group(2))

    uncommented = _INLINE_COMMENT.match(text)
    if uncommented:
        return uncommented.group(1).rstrip(" ")
    return text


def is_lossy(value: str) -> bool:
    """True when ``value`` would not read back identically from a .env line."""
    encoded = encode(value)
    return decode(encoded) != value or encoded.endswith("\r")


def opens_multiline(encoded: str) -> bool:
    """True when ``encoded`` starts a double-quoted value left open on its line.

    Such a value continues on the following lines up to the closing quote,
    the way dotenv reads literal multi-line values.
    """
    text = encoded.strip(" ")
    if not text.startswith('"') or (len(text) >= 2 and text.endswith('"')):
        return False
    return not _closes_quote(text[1:])


def closes_multiline(line: str) -> bool:
    """True when ``line`` contains the unescaped quote ending an open value."""
    return _closes_quote(line)


def _closes_quote(text: str) -> bool:
    escaped = False
    for char in text:
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == '"':
            return True
    return False


def _unquote(quote: str, inner: str) -> str:
    if quote == "'":
        return inner
    if _ESCAPED_NEWLINE.search(inner):
        return _ESCAPED_NEWLINE.sub("\n", inner)
    return _ESCAPED_QUOTE.sub('"', inner)
