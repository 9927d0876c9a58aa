"""
Secret Diff -- show what differs between the .env file and the vault.

Compares two secret maps key by key, producing the keys only one side
has and the keys both sides hold with different values. Nothing is
written anywhere.

Usage:
    dotvault diff                            # text diff to terminal
    dotvault diff --format json              # machine-readable
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

from rich.markup import escape

from .envfile.codec import encode


class DiffScope(str, Enum):
    """Which side(s) a diff row describes."""

    LOCAL_ONLY = "local-only"
    REMOTE_ONLY = "remote-only"
    BOTH_DIFFER = "both-differ"


@dataclass(frozen=True)
class DiffEntry:
    """One rendered diff row.

    Attributes:
        sign: ``-`` for the local side, ``+`` for the remote side.
        scope: Which side(s) hold the key.
        key: Secret name.
        value: Raw value on the side the sign points to.
    """

    sign: str
    scope: DiffScope
    key: str
    value: str


@dataclass
class DiffReport:
    """Difference between a local and a remote secret map.

    Attributes:
        only_local: Keys present only in the .env file.
        only_remote: Keys present only in the vault.
        changed: Keys on both sides with different values, as
            ``(local_value, remote_value)``.
    """

    only_local: dict[str, str] = field(default_factory=dict)
    only_remote: dict[str, str] = field(default_factory=dict)
    changed: dict[str, tuple[str, str]] = field(default_factory=dict)

    @property
    def has_changes(self) -> bool:
        return bool(self.only_local or self.only_remote or self.changed)

    def entries(self) -> Iterator[DiffEntry]:
        """Rows in display order: local-only, differing, remote-only."""
        for key, value in self.only_local.items():
            yield DiffEntry("-", DiffScope.LOCAL_ONLY, key, value)
        for key, (local_value, remote_value) in self.changed.items():
            yield DiffEntry("-", DiffScope.BOTH_DIFFER, key, local_value)
            yield DiffEntry("+", DiffScope.BOTH_DIFFER, key, remote_value)
        for key, value in self.only_remote.items():
            yield DiffEntry("+", DiffScope.REMOTE_ONLY, key, value)

    def reversed(self) -> "DiffReport":
        """The same report with the local and remote roles swapped."""
        return DiffReport(
            only_local=dict(self.only_remote),
            only_remote=dict(self.only_local),
            changed={k: (r, l) for k, (l, r) in self.changed.items()},
        )

    def summary(self) -> dict[str, int]:
        return {
            "only_local": len(self.only_local),
            "only_remote": len(self.only_remote),
            "changed": len(self.changed),
        }


def compute_diff(local: dict[str, str], remote: dict[str, str]) -> DiffReport:
    """Compare two secret maps.

    Local-only and differing keys keep the local map's order;
    remote-only keys keep the remote map's order.

    Args:
        local: Secrets from the .env file.
        remote: Secrets from the vault.

    Returns:
        DiffReport. Keys equal on both sides are not reported.
    """
    report = DiffReport()
    for key, value in local.items():
        if key not in remote:
            report.only_local[key] = value
        elif remote[key] != value:
            report.changed[key] = (value, remote[key])
    for key, value in remote.items():
        if key not in local:
            report.only_remote[key] = value
    return report


# ═══════════════════════════════════════════════════════════════════════════
# Formatters
# ═══════════════════════════════════════════════════════════════════════════


_LABELS = {
    ("-", DiffScope.LOCAL_ONLY): "[.env only]",
    ("-", DiffScope.BOTH_DIFFER): "[.env]",
    ("+", DiffScope.BOTH_DIFFER): "[1pass]",
    ("+", DiffScope.REMOTE_ONLY): "[1pass only]",
}


def format_text(report: DiffReport) -> str:
    """Format a diff as Rich-markup text, red for local and green for vault.

    Args:
        report: The computed diff.

    Returns:
        Markup string for ``Console.print``.
    """
    if not report.has_changes:
        return "[dim]No differences found between .env and 1Password secrets.[/]"

    lines = []
    for entry in report.entries():
        color = "red" if entry.sign == "-" else "green"
        label = _LABELS[(entry.sign, entry.scope)]
        text = f"{entry.sign} {label} {entry.key}={encode(entry.value)}"
        lines.append(f"[{color}]{escape(text)}[/]")

    counts = report.summary()
    lines.append("")
    lines.append(
        f"[dim]{counts['only_local']} only in .env, "
        f"{counts['changed']} differ, "
        f"{counts['only_remote']} only in 1Password[/]"
    )
    return "\n".join(lines)


def format_json(report: DiffReport) -> str:
    """Format a diff as JSON.

    Args:
        report: The computed diff.

    Returns:
        JSON string with the ordered rows and per-group counts.
    """
    data: dict[str, Any] = {
        "has_changes": report.has_changes,
        "summary": report.summary(),
        "entries": [
            {
                "sign": e.sign,
                "scope": e.scope.value,
                "key": e.key,
                "value": e.value,
            }
            for e in report.entries()
        ],
    }
    return json.dumps(data, indent=2)


FORMATTERS = {
    "text": format_text,
    "json": format_json,
}
