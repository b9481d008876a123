"""Record preprocessing and row normalization into Contacts."""

from warmpath.services.normalization.contact_import_service import ContactImportService
from warmpath.services.normalization.record_preprocessor import (
    RecordPreprocessor,
    preprocess_record,
)
from warmpath.services.normalization.row_normalizer import RowNormalizer, normalize_row

__all__ = [
    "ContactImportService",
    "RecordPreprocessor",
    "RowNormalizer",
    "normalize_row",
    "preprocess_record",
]
