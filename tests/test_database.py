"""
Tests for reference entries, descriptor parsing and the reference database.
"""

import json
import tempfile
from pathlib import Path

import pytest
from pydantic import ValidationError

from carpetscan import PatternFamily, ReferenceDatabase, ReferenceEntry
from carpetscan.patterns import UNKNOWN_TAG, parse_descriptor


def record(entry_id: str = "crown", **overrides) -> dict:
    """Build a valid raw reference record."""
    data = {
        "entry_id": entry_id,
        "display_name": entry_id.title(),
        "dominant_colors": ["#2f4f4f", "#daa520", "#f5f5dc"],
        "variance": 145.7,
        "pattern": "ornamental leaf",
    }
    data.update(overrides)
    return data


class TestDescriptorParsing:
    """Test the closed descriptor tag table."""

    def test_compound_descriptor(self):
        """Test that the first known token decides the family."""
        assert parse_descriptor("floral/leaf") == (PatternFamily.ORNAMENTAL, "floral")
        assert parse_descriptor("Geometric Squares") == (PatternFamily.GEOMETRIC, "geometric")

    def test_no_substring_matching(self):
        """Test that tags only match whole tokens."""
        assert parse_descriptor("leafy")[1] == UNKNOWN_TAG
        assert parse_descriptor("displain")[1] == UNKNOWN_TAG

    def test_unknown_descriptor(self):
        """Test the fallback for unrecognized text."""
        assert parse_descriptor("") == (PatternFamily.MIXED, UNKNOWN_TAG)
        assert parse_descriptor("tartan") == (PatternFamily.MIXED, UNKNOWN_TAG)


class TestReferenceEntry:
    """Test reference entry validation."""

    def test_hex_colors_parsed(self):
        """Test that hex strings become RGB tuples."""
        entry = ReferenceEntry.model_validate(record())

        assert entry.dominant_colors[0] == (47, 79, 79)
        assert entry.pattern.family == PatternFamily.ORNAMENTAL
        assert entry.pattern.text == "ornamental leaf"

    def test_rgb_triples_accepted(self):
        """Test that RGB lists are accepted as colors."""
        entry = ReferenceEntry.model_validate(record(dominant_colors=[[1, 2, 3]]))

        assert entry.dominant_colors == ((1, 2, 3),)

    def test_frozen(self):
        """Test that entries are immutable."""
        entry = ReferenceEntry.model_validate(record())

        with pytest.raises(ValidationError):
            entry.variance = 1.0

    @pytest.mark.parametrize(
        "overrides",
        [
            {"dominant_colors": []},
            {"dominant_colors": ["#zzzzzz"]},
            {"dominant_colors": ["#fff"]},
            {"dominant_colors": [[300, 0, 0]]},
            {"variance": -1.0},
            {"entry_id": ""},
        ],
    )
    def test_invalid_records(self, overrides):
        """Test rejection of malformed records."""
        with pytest.raises(ValidationError):
            ReferenceEntry.model_validate(record(**overrides))


class TestReferenceDatabase:
    """Test loading and querying the reference database."""

    def test_from_records_skips_invalid(self):
        """Test that invalid records are skipped and valid ones kept."""
        db = ReferenceDatabase.from_records([
            record("crown"),
            record("bad_color", dominant_colors=["nope"]),
            {"display_name": "No id"},
            record("red_lion", pattern="patchwork diamonds"),
        ])

        assert len(db) == 2
        assert [e.entry_id for e in db] == ["crown", "red_lion"]
        assert db.get("red_lion").pattern.family == PatternFamily.MIXED
        assert db.get("missing") is None

    def test_duplicate_ids_keep_first(self):
        """Test that duplicate ids keep the first occurrence."""
        db = ReferenceDatabase.from_records([
            record("crown", variance=1.0),
            record("crown", variance=2.0),
        ])

        assert len(db) == 1
        assert db[0].variance == 1.0

    def test_from_json_list_and_object(self):
        """Test both supported JSON layouts."""
        with tempfile.TemporaryDirectory() as tmpdir:
            list_path = Path(tmpdir) / "list.json"
            object_path = Path(tmpdir) / "object.json"
            list_path.write_text(json.dumps([record("a"), record("b")]))
            object_path.write_text(json.dumps({"references": [record("c")]}))

            assert len(ReferenceDatabase.from_json(list_path)) == 2
            assert ReferenceDatabase.from_json(object_path)[0].entry_id == "c"

    def test_from_json_bad_layout(self):
        """Test that an unsupported JSON layout raises ValueError."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "bad.json"
            path.write_text(json.dumps({"venues": []}))

            with pytest.raises(ValueError, match="Expected a list"):
                ReferenceDatabase.from_json(path)

    def test_sample_database(self):
        """Test that the bundled sample set loads completely."""
        db = ReferenceDatabase.sample()

        assert len(db) == 8
        crown = db.get("crown_watford")
        assert crown is not None
        assert crown.pattern.family == PatternFamily.ORNAMENTAL
        assert db.get("moon_under_water_watford").pattern.family == PatternFamily.GEOMETRIC
