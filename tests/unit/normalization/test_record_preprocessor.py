"""Unit tests for RecordPreprocessor.

Tests header aliasing, notes accumulation, split AUM columns, the name/firm
backfill and URL promotion on raw source records.
"""

import pytest

from warmpath.schemas.contact import Provenance
from warmpath.services.normalization.record_preprocessor import (
    RecordPreprocessor,
    clean_value,
    combine_aum_parts,
    normalize_field_name,
    preprocess_record,
)


NBSP = chr(0xA0)
ZERO_WIDTH_SPACE = chr(0x200B)
RIGHT_SINGLE_QUOTE = chr(0x2019)
LEFT_DOUBLE_QUOTE = chr(0x201C)
RIGHT_DOUBLE_QUOTE = chr(0x201D)


class TestHeaderMapping:
    """Header -> canonical key mapping."""

    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Full Name", "name"),
            ("Company Name", "firm"),
            ("Email Address", "email"),
            ("Job Title", "role"),
            ("HQ", "location"),
            ("LinkedIn Profile URL", "linkedin"),
            ("Fund Size", "aum"),
            ("Description", "notes"),
        ],
    )
    def test_aliases(self, header, expected):
        """Test that common headers map to their canonical key."""
        assert normalize_field_name(header) == expected

    def test_source_keys_are_never_aliased(self):
        """Test that provenance keys keep their name."""
        assert normalize_field_name("source_type") == "source_type"
        assert normalize_field_name("source_filename") == "source_filename"

    def test_canonical_keys_map_to_themselves(self):
        """Test that an already-canonical key is stable."""
        assert normalize_field_name("personal_connections") == "personal_connections"

    def test_unknown_header_falls_through_cleaned(self):
        """Test that unmatched headers are only lower-cased and trimmed."""
        assert normalize_field_name("  Favourite Colour ") == "favourite colour"


class TestCleanValue:
    """Value cleaning."""

    def test_special_spaces_and_quotes(self):
        """Test that unicode spaces and curly quotes are normalized."""
        raw = f"  O{RIGHT_SINGLE_QUOTE}Brien{NBSP}and{ZERO_WIDTH_SPACE}Co {LEFT_DOUBLE_QUOTE}x{RIGHT_DOUBLE_QUOTE} "
        assert clean_value(raw) == "O'Brien and Co \"x\""

    def test_collapses_horizontal_whitespace_only(self):
        """Test that runs of spaces collapse while newlines survive."""
        assert clean_value("first   line \n\n  second\tline") == "first line\nsecond line"

    def test_non_string_values(self):
        """Test serialization of non-string values."""
        assert clean_value(None) is None
        assert clean_value(True) == "true"
        assert clean_value(42) == "42"
        assert clean_value({"a": 1}) == '{"a": 1}'
        assert clean_value(["x", "y"]) == '["x", "y"]'


class TestRecordPreprocessor:
    """End-to-end preprocessing of single records."""

    @pytest.fixture
    def preprocessor(self):
        return RecordPreprocessor()

    def test_standard_contact_record(self, preprocessor):
        """Test the canonical keys of a typical spreadsheet row."""
        result = preprocessor.preprocess(
            {
                "Full Name": "John Smith",
                "Company Name": "Acme Capital",
                "Email Address": "john@acme.com",
                "Job Title": "Managing Director",
            }
        )

        assert result == {
            "name": "John Smith",
            "firm": "Acme Capital",
            "email": "john@acme.com",
            "role": "Managing Director",
        }

    def test_notes_fields_accumulate_in_input_order(self, preprocessor):
        """Test that notes-like columns are newline-joined in column order."""
        result = preprocessor.preprocess(
            {"Notes": "First note", "Description": "Second note", "Summary": "Third note"}
        )

        assert result["notes"] == "First note\nSecond note\nThird note"

    def test_split_aum_columns_are_concatenated(self, preprocessor):
        """Test that a figure split across AUM columns is reassembled."""
        result = preprocessor.preprocess({"AUM": "$500", "AUM2": "000", "AUM3": "000.00"})

        assert result["aum"] == "$500000000.00"

    def test_aum_without_currency_symbol(self):
        """Test that no symbol is invented when no part carried one."""
        assert combine_aum_parts(["1,200", "000"]) == "1200000"

    def test_first_location_wins_and_keeps_text_before_comma(self, preprocessor):
        """Test the location comma rule and that later location columns are ignored."""
        result = preprocessor.preprocess(
            {"Location": "New York City, NY, United States", "City": "Boston"}
        )

        assert result["location"] == "New York City"

    def test_backfills_name_from_firm(self, preprocessor):
        """Test that a record with only a firm gets the firm as name."""
        result = preprocessor.preprocess({"Company": "Acme Capital"})

        assert result["name"] == "Acme Capital"
        assert result["firm"] == "Acme Capital"

    def test_backfills_firm_from_name(self, preprocessor):
        """Test that a record with only a name gets the name as firm."""
        result = preprocessor.preprocess({"Full Name": "Jane Doe"})

        assert result["firm"] == "Jane Doe"

    def test_no_backfill_when_key_is_present_but_empty(self, preprocessor):
        """Test that an explicitly empty column is not overwritten."""
        result = preprocessor.preprocess({"Full Name": "Jane Doe", "Company": ""})

        assert result["name"] == "Jane Doe"
        assert "firm" not in result

    def test_urls_are_promoted(self, preprocessor):
        """Test that URLs found under other keys move to linkedin/website."""
        result = preprocessor.preprocess(
            {
                "Full Name": "Jane Doe",
                "Company": "Acme",
                "Profile Link": "https://www.linkedin.com/in/janedoe",
                "Homepage": "http://acme.com",
            }
        )

        assert result["linkedin"] == "https://www.linkedin.com/in/janedoe"
        assert result["website"] == "http://acme.com"
        assert "profile link" not in result

    def test_url_like_firm_is_truncated(self, preprocessor):
        """Test that a firm holding a URL keeps only the part before the first period."""
        result = preprocessor.preprocess({"Full Name": "Jane Doe", "Company": "Acme<b>.com"})

        assert result["firm"] == "Acme<b>"

    def test_source_hint_is_attached(self, preprocessor):
        """Test that provenance is recorded on the cleaned record."""
        result = preprocessor.preprocess(
            {"Full Name": "Jane Doe"},
            Provenance(type="csv", filename="contacts.csv"),
        )

        assert result["source_type"] == "csv"
        assert result["source_filename"] == "contacts.csv"

    def test_empty_values_are_dropped(self, preprocessor):
        """Test that keys with empty values do not survive."""
        result = preprocessor.preprocess({"Full Name": "Jane Doe", "Email": "   ", "Role": None})

        assert "email" not in result
        assert "role" not in result

    def test_preprocessing_is_idempotent(self, preprocessor):
        """Test that a second pass over cleaned output changes nothing."""
        source = Provenance(type="csv", filename="contacts.csv")
        raw = {
            "Full Name": f"John{NBSP}Smith",
            "Company Name": "Acme Capital LLC",
            "Notes": "Met at conference",
            "About": "Invests in  fintech",
            "Location": "san francisco, ca",
            "AUM": "$1.2",
            "AUM (bn)": "5",
            "LinkedIn": "https://www.linkedin.com/in/jsmith",
            "personal_connections": "Introduced with Jane Doe",
        }

        once = preprocessor.preprocess(raw, source)
        twice = preprocessor.preprocess(once, source)

        assert once == twice
        assert once["location"] == "San Francisco"

    def test_total_failure_returns_empty_dict(self, preprocessor):
        """Test that an unusable record yields an empty mapping instead of raising."""

        class Exploding(dict):
            def keys(self):
                raise RuntimeError("broken record")

        assert preprocessor.preprocess(Exploding()) == {}

    def test_convenience_function(self):
        """Test the module-level wrapper."""
        assert preprocess_record({"Company": "Acme"})["name"] == "Acme"
