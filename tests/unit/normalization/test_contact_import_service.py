"""Unit tests for ContactImportService."""

import pytest

from warmpath.services.normalization.contact_import_service import ContactImportService


RECORDS = [
    {"Full Name": "John Smith", "Company Name": "Acme Capital", "Email": "john@acme.com"},
    {"Notes": ""},
    {"Email": "orphan@example.com"},
    {"Company": "Beta Partners"},
]


class TestContactImportService:

    def test_summary_counts(self, csv_source):
        """Test that skipped, failed and imported rows are counted separately."""
        summary = ContactImportService().import_records(RECORDS, csv_source)

        assert summary.total_rows == 4
        assert summary.imported == 2
        assert summary.skipped_rows == 1
        assert summary.failed_rows == 1
        assert summary.missing_required_fields == {"name": 1, "firm": 1}
        assert [contact.name for contact in summary.contacts] == ["John Smith", "Beta Partners"]

    def test_row_errors_name_the_row(self, csv_source):
        """Test that per-row errors are plain strings with the row number."""
        summary = ContactImportService().import_records(RECORDS, csv_source)

        assert "Row 2: no usable fields" in summary.row_errors
        assert 'Row 3: Missing required field "name"' in summary.row_errors
        assert all(not error.startswith("Traceback") for error in summary.row_errors)

    def test_keep_incomplete_rows(self, csv_source):
        """Test that incomplete contacts can be kept for manual review."""
        summary = ContactImportService(keep_incomplete=True).import_records(RECORDS, csv_source)

        assert summary.imported == 3
        assert summary.failed_rows == 1
        assert summary.contacts[1].email == "orphan@example.com"

    @pytest.mark.parametrize("records", [[], iter([])])
    def test_empty_input(self, csv_source, records):
        summary = ContactImportService().import_records(records, csv_source)

        assert summary.total_rows == 0
        assert summary.contacts == []

    def test_contacts_carry_provenance(self, csv_source):
        summary = ContactImportService().import_records(RECORDS[:1], csv_source)

        assert summary.contacts[0].source.type == "csv"
        assert summary.contacts[0].source.filename == "contacts.csv"
