"""
Contact Import Service

Runs preprocessing and normalization over a batch of raw records and builds
the summary shown to whoever triggered the import.
"""

from typing import Any, Iterable, Mapping, Optional

from warmpath.schemas.contact import ImportSummary, Provenance
from warmpath.services.normalization.record_preprocessor import RecordPreprocessor
from warmpath.services.normalization.row_normalizer import RowNormalizer
from warmpath.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ContactImportService:
    """Turns raw source records into Contacts plus an import summary."""

    def __init__(
        self,
        preprocessor: Optional[RecordPreprocessor] = None,
        normalizer: Optional[RowNormalizer] = None,
        keep_incomplete: bool = False,
    ):
        self.preprocessor = preprocessor or RecordPreprocessor()
        self.normalizer = normalizer or RowNormalizer()
        self.keep_incomplete = keep_incomplete

    def import_records(
        self,
        records: Iterable[Mapping[str, Any]],
        source: Provenance,
        debug: bool = False,
    ) -> ImportSummary:
        """
        Normalize every record of one source.

        Rows that preprocess to nothing are skipped. Rows missing a required
        field are counted as failed and dropped unless ``keep_incomplete``.
        """
        summary = ImportSummary()

        for row_number, record in enumerate(records, start=1):
            summary.total_rows += 1

            cleaned = self.preprocessor.preprocess(record, source)
            if not any(not key.startswith("source_") for key in cleaned):
                summary.skipped_rows += 1
                summary.row_errors.append(f"Row {row_number}: no usable fields")
                continue

            result = self.normalizer.normalize(cleaned, source=source, debug=debug)

            for field in result.missing_fields:
                summary.missing_required_fields[field] = summary.missing_required_fields.get(field, 0) + 1
            for error in result.errors:
                summary.row_errors.append(f"Row {row_number}: {error.message}")

            if result.missing_fields:
                summary.failed_rows += 1
                if not self.keep_incomplete:
                    continue

            summary.contacts.append(result.contact)
            summary.imported += 1

        LOGGER.info(
            f"Imported {summary.imported} of {summary.total_rows} rows",
            extra={
                "source_type": source.type,
                "source_filename": source.filename,
                "skipped_rows": summary.skipped_rows,
                "failed_rows": summary.failed_rows,
                "missing_required_fields": summary.missing_required_fields,
            },
        )
        return summary
