"""
EnvDocument -- a format-preserving editor for .env files.

The file is held as an ordered list of line records instead of a string,
so updates are structural:

    KeyValueLine   KEY=value (plus the continuation lines of an open
                   double-quoted value that spans several lines)
    OpaqueLine     comments, blank lines, anything else -- kept verbatim

Parsing then serializing an untouched document gives back the original
text, with a single normalized trailing newline. A CRLF ending stays with
its line and is never part of a value.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Union

from ..errors import LocalFileError
from .codec import closes_multiline, decode, encode, opens_multiline

logger = logging.getLogger("dotvault.envfile.document")

KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_LINE_PATTERN = re.compile(r"^(\s*)([A-Za-z_][A-Za-z0-9_]*)=(.*)$")


def is_valid_key(key: str) -> bool:
    """Check that ``key`` can appear on the left of ``=`` in a .env file."""
    return bool(KEY_PATTERN.match(key))


@dataclass
class KeyValueLine:
    """A ``KEY=value`` assignment.

    Attributes:
        key: Variable name.
        raw_value: Encoded text after ``=`` on the first line.
        indentation: Leading whitespace before the key.
        continuation_lines: Raw lines that belong to a multi-line value.
        line_ending: ``"\\r"`` when the first line ends CRLF, else empty.
    """

    key: str
    raw_value: str
    indentation: str = ""
    continuation_lines: list[str] = field(default_factory=list)
    line_ending: str = ""

    @property
    def value(self) -> str:
        """Decoded value, continuation lines included."""
        lines = [self.raw_value, *(_strip_cr(line) for line in self.continuation_lines)]
        return decode("\n".join(lines))

    def render(self) -> list[str]:
        first = f"{self.indentation}{self.key}={self.raw_value}{self.line_ending}"
        return [first, *self.continuation_lines]


@dataclass
class OpaqueLine:
    """Any line that is not an assignment. Kept byte for byte."""

    text: str

    def render(self) -> list[str]:
        return [self.text]


LineRecord = Union[KeyValueLine, OpaqueLine]


class EnvDocument:
    """An editable, order-preserving view of a .env file."""

    def __init__(self, lines: Optional[list[LineRecord]] = None):
        self.lines: list[LineRecord] = list(lines or [])

    # ------------------------------------------------------------------
    # Parsing and serialization
    # ------------------------------------------------------------------

    @classmethod
    def parse(cls, text: str) -> "EnvDocument":
        """Split ``text`` into line records.

        A line matching ``KEY=value`` starts a KeyValueLine. If its value
        opens a double quote that is not closed on the same line, the
        following lines are continuation lines up to the one that closes
        it, the next assignment, or end of input.
        """
        raw_lines = text.split("\n")
        if raw_lines and raw_lines[-1] == "":
            raw_lines.pop()

        records: list[LineRecord] = []
        i = 0
        while i < len(raw_lines):
            line = raw_lines[i]
            match = _LINE_PATTERN.match(line)
            i += 1
            if not match:
                records.append(OpaqueLine(line))
                continue

            indentation, key, raw_value = match.groups()
            line_ending = "\r" if raw_value.endswith("\r") else ""
            record = KeyValueLine(
                key=key,
                raw_value=_strip_cr(raw_value),
                indentation=indentation,
                line_ending=line_ending,
            )
            if opens_multiline(record.raw_value):
                while i < len(raw_lines) and not _LINE_PATTERN.match(raw_lines[i]):
                    record.continuation_lines.append(raw_lines[i])
                    i += 1
                    if closes_multiline(record.continuation_lines[-1]):
                        break
            records.append(record)

        return cls(records)

    def serialize(self) -> str:
        """Render the document, ending with exactly one trailing newline."""
        rendered: list[str] = []
        for record in self.lines:
            rendered.extend(record.render())
        if not rendered:
            return ""
        return "\n".join(rendered) + "\n"

    @classmethod
    def load(cls, path: Path) -> "EnvDocument":
        """Read and parse a .env file.

        Raises:
            LocalFileError: If the file is missing or unreadable.
        """
        path = Path(path)
        if not path.is_file():
            raise LocalFileError(f"Env file not found: {path}")
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise LocalFileError(f"Cannot read {path}: {exc}") from exc
        return cls.parse(text)

    def save(self, path: Path) -> None:
        """Write the document back to ``path`` in one go.

        Raises:
            LocalFileError: If the file cannot be written.
        """
        path = Path(path)
        try:
            path.write_text(self.serialize(), encoding="utf-8")
        except OSError as exc:
            raise LocalFileError(f"Cannot write {path}: {exc}") from exc
        logger.debug("Wrote %d line record(s) to %s", len(self.lines), path)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def assignments(self) -> Iterator[KeyValueLine]:
        for record in self.lines:
            if isinstance(record, KeyValueLine):
                yield record

    def keys(self) -> list[str]:
        """Distinct keys in order of first appearance."""
        return list(dict.fromkeys(r.key for r in self.assignments()))

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Decoded value of ``key``; the last assignment wins."""
        value = default
        for record in self.assignments():
            if record.key == key:
                value = record.value
        return value

    def __contains__(self, key: object) -> bool:
        return any(r.key == key for r in self.assignments())

    def to_secret_map(self) -> dict[str, str]:
        """All assignments as ``{key: decoded value}``.

        Keys keep the order of their first appearance; for a key assigned
        twice the last value wins.
        """
        secrets: dict[str, str] = {}
        for record in self.assignments():
            secrets[record.key] = record.value
        return secrets

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def upsert(self, key: str, value: str) -> bool:
        """Set ``key`` to ``value``.

        Existing assignments are rewritten in place, keeping indentation
        and position. A new key is appended at the end, after a blank line
        unless the document already ends with one, using the line ending
        of the current last line.

        Returns:
            True if the document changed.

        Raises:
            ValueError: If ``key`` is not a valid variable name.
        """
        if not is_valid_key(key):
            raise ValueError(f"Invalid key: {key!r}")

        existing = [r for r in self.assignments() if r.key == key]
        if existing:
            changed = False
            for record in existing:
                if record.value == value:
                    continue
                record.raw_value = encode(value)
                record.continuation_lines = []
                changed = True
            return changed

        last = self.lines[-1].render()[-1] if self.lines else ""
        line_ending = "\r" if last.endswith("\r") else ""
        if self.lines and last.strip() != "":
            self.lines.append(OpaqueLine(line_ending))
        self.lines.append(
            KeyValueLine(key=key, raw_value=encode(value), line_ending=line_ending)
        )
        return True


def _strip_cr(line: str) -> str:
    return line[:-1] if line.endswith("\r") else line
