"""Tests for the roster written next to the derivatives."""

import json
from pathlib import Path
from types import SimpleNamespace

from trombinoscope.models import PersonIdentity
from trombinoscope.roster import ROSTER_FILENAME, load_roster, roster_entries, save_roster, sort_key


def _session(stem, given, family):
    return SimpleNamespace(path=Path(f"/photos/{stem}.jpg"), identity=PersonIdentity(given, family))


SESSIONS = [
    _session("zoe", "Zoé", "martin"),
    _session("alice", "Alice", "Dupont"),
    _session("bob", "bob", "Martin"),
    _session("carl", "Carl", "dupont"),
]


class TestOrdering:
    def test_sort_key_ignores_case(self):
        assert sort_key(PersonIdentity("alice", "dupont")) == sort_key(PersonIdentity("ALICE", "Dupont"))

    def test_family_then_given(self):
        assert [e["image"] for e in roster_entries(SESSIONS)] == ["alice", "carl", "bob", "zoe"]

    def test_entry_fields(self):
        assert roster_entries(SESSIONS[:1]) == [{"image": "zoe", "given": "Zoé", "family": "martin"}]


class TestPersistence:
    def test_save_and_load(self, tmp_path):
        out = tmp_path / "cropped"
        path = save_roster(out, SESSIONS)
        assert path == out / ROSTER_FILENAME
        assert load_roster(out) == roster_entries(SESSIONS)
        assert "Zoé" in path.read_text(encoding="utf-8")

    def test_missing(self, tmp_path):
        assert load_roster(tmp_path) == []

    def test_corrupt(self, tmp_path):
        (tmp_path / ROSTER_FILENAME).write_text("[", encoding="utf-8")
        assert load_roster(tmp_path) == []

    def test_wrong_version(self, tmp_path):
        (tmp_path / ROSTER_FILENAME).write_text(json.dumps({"version": 2, "entries": []}), encoding="utf-8")
        assert load_roster(tmp_path) == []

    def test_invalid_entries_are_dropped(self, tmp_path):
        good = {"image": "a", "given": "A", "family": "B"}
        envelope = {"version": 1, "entries": [good, {"image": "b"}, "junk", {"image": 1, "given": "", "family": ""}]}
        (tmp_path / ROSTER_FILENAME).write_text(json.dumps(envelope), encoding="utf-8")
        assert load_roster(tmp_path) == [good]
