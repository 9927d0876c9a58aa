"""Tests for the secret diff and its formatters."""

from __future__ import annotations

import json

from dotvault.diff import (
    FORMATTERS,
    DiffEntry,
    DiffReport,
    DiffScope,
    compute_diff,
    format_json,
    format_text,
)


LOCAL = {"LOCAL_ONLY": "1", "SHARED": "a", "SAME": "x"}
REMOTE = {"SAME": "x", "SHARED": "b", "REMOTE_ONLY": "2"}


class TestComputeDiff:
    """Tests for compute_diff()."""

    def test_groups(self):
        report = compute_diff(LOCAL, REMOTE)
        assert report.only_local == {"LOCAL_ONLY": "1"}
        assert report.only_remote == {"REMOTE_ONLY": "2"}
        assert report.changed == {"SHARED": ("a", "b")}
        assert report.has_changes

    def test_identical_maps(self):
        report = compute_diff({"A": "1"}, {"A": "1"})
        assert not report.has_changes
        assert list(report.entries()) == []

    def test_empty_maps(self):
        assert not compute_diff({}, {}).has_changes

    def test_entry_order(self):
        report = compute_diff(LOCAL, REMOTE)
        assert list(report.entries()) == [
            DiffEntry("-", DiffScope.LOCAL_ONLY, "LOCAL_ONLY", "1"),
            DiffEntry("-", DiffScope.BOTH_DIFFER, "SHARED", "a"),
            DiffEntry("+", DiffScope.BOTH_DIFFER, "SHARED", "b"),
            DiffEntry("+", DiffScope.REMOTE_ONLY, "REMOTE_ONLY", "2"),
        ]

    def test_swapping_sides_mirrors_report(self):
        forward = compute_diff(LOCAL, REMOTE)
        backward = compute_diff(REMOTE, LOCAL)
        assert backward == forward.reversed()

    def test_summary(self):
        assert compute_diff(LOCAL, REMOTE).summary() == {
            "only_local": 1,
            "only_remote": 1,
            "changed": 1,
        }

    def test_whitespace_is_significant(self):
        report = compute_diff({"A": "1"}, {"A": "1 "})
        assert report.changed == {"A": ("1", "1 ")}


class TestFormatters:
    """Tests for format_text / format_json."""

    def test_registry(self):
        assert set(FORMATTERS) == {"text", "json"}

    def test_text_no_changes(self):
        text = format_text(DiffReport())
        assert "No differences found between .env and 1Password secrets." in text

    def test_text_rows(self):
        text = format_text(compute_diff(LOCAL, REMOTE))
        lines = text.splitlines()
        assert lines[0] == "[red]- [.env only] LOCAL_ONLY=1[/]"
        assert lines[1] == "[red]- [.env] SHARED=a[/]"
        assert lines[2] == "[green]+ [1pass] SHARED=b[/]"
        assert lines[3] == "[green]+ [1pass only] REMOTE_ONLY=2[/]"
        assert "1 only in .env, 1 differ, 1 only in 1Password" in lines[-1]

    def test_text_encodes_values(self):
        text = format_text(compute_diff({"A": "two words"}, {}))
        assert 'A="two words"' in text

    def test_json(self):
        data = json.loads(format_json(compute_diff(LOCAL, REMOTE)))
        assert data["has_changes"] is True
        assert data["summary"]["changed"] == 1
        assert data["entries"][0] == {
            "sign": "-",
            "scope": "local-only",
            "key": "LOCAL_ONLY",
            "value": "1",
        }
        assert [e["sign"] for e in data["entries"]] == ["-", "-", "+", "+"]

    def test_json_no_changes(self):
        data = json.loads(format_json(DiffReport()))
        assert data == {
            "has_changes": False,
            "summary": {"only_local": 0, "only_remote": 0, "changed": 0},
            "entries": [],
        }
