"""
Record Preprocessor

Cleans a raw record from any ingestion source before normalization: header
aliasing, notes accumulation, split AUM columns, URL promotion and the
name/firm backfill.
"""

import json
import re
from typing import Any, Mapping, Optional

from warmpath.schemas.contact import Provenance
from warmpath.services.normalization.constants import (
    COLUMN_ALIASES,
    CURLY_DOUBLE_QUOTES,
    CURLY_SINGLE_QUOTES,
    HORIZONTAL_WHITESPACE,
    LINE_BREAKS,
    LOCATION_TERMS,
    NOTES_FIELDS,
    SOURCE_KEY_PREFIX,
    UNICODE_SPACES,
)
from warmpath.utils.logging import get_logger

LOGGER = get_logger(__name__)

_NON_AMOUNT_CHARS = re.compile(r"[^0-9.]")
_CURRENCY_SYMBOLS = ("$", "€", "£", "¥")


def clean_value(value: Any) -> Optional[str]:
    """Serialize and clean one raw value. ``None`` stays ``None``."""
    if value is None:
        return None
    if isinstance(value, bool):
        text = "true" if value else "false"
    elif isinstance(value, (dict, list, tuple)):
        text = json.dumps(value, default=str)
    else:
        text = str(value)

    text = UNICODE_SPACES.sub(" ", text)
    text = CURLY_SINGLE_QUOTES.sub("'", text)
    text = CURLY_DOUBLE_QUOTES.sub('"', text)
    text = HORIZONTAL_WHITESPACE.sub(" ", text).strip()
    # Newlines survive so accumulated notes stay stable on a second pass
    return LINE_BREAKS.sub("\n", text)


def normalize_field_name(key: str) -> str:
    """Map a raw header to its canonical key, or return the cleaned header."""
    cleaned = key.lower().strip()
    if cleaned.startswith(SOURCE_KEY_PREFIX) or cleaned in COLUMN_ALIASES:
        return cleaned

    for canonical, aliases in COLUMN_ALIASES.items():
        if cleaned in aliases:
            return canonical
    for canonical, aliases in COLUMN_ALIASES.items():
        if any(alias in cleaned for alias in aliases):
            return canonical

    if "linkedin" in cleaned:
        return "linkedin"
    if "website" in cleaned or "http" in cleaned:
        return "website"
    if any(term in cleaned for term in LOCATION_TERMS):
        return "location"
    return cleaned


def combine_aum_parts(parts: list[str]) -> str:
    """Concatenate split AUM columns in order, keeping one leading currency symbol."""
    symbol = ""
    for part in parts:
        for candidate in _CURRENCY_SYMBOLS:
            if candidate in part:
                symbol = candidate
                break
        if symbol:
            break
    combined = "".join(_NON_AMOUNT_CHARS.sub("", part) for part in parts)
    return f"{symbol}{combined}" if combined else ""


def _title_case_words(text: str) -> str:
    return " ".join(word[:1].upper() + word[1:].lower() for word in text.split(" "))


class RecordPreprocessor:
    """Turns a raw header -> value mapping into canonical lower-case keys."""

    def __init__(self, debug: bool = False):
        self.debug = debug

    def preprocess(
        self,
        record: Mapping[str, Any],
        source: Optional[Provenance | Mapping[str, Any]] = None,
    ) -> dict[str, str]:
        """
        Preprocess one raw record.

        Args:
            record: Raw header -> value mapping, in source column order
            source: Optional provenance hint attached as source_type/source_filename

        Returns:
            Canonical key -> cleaned value mapping, or an empty dict on total failure
        """
        try:
            return self._preprocess(record, source)
        except Exception as e:
            LOGGER.error(
                f"Failed to preprocess record: {e}",
                extra={"record_type": type(record).__name__},
            )
            return {}

    def _preprocess(
        self,
        record: Mapping[str, Any],
        source: Optional[Provenance | Mapping[str, Any]],
    ) -> dict[str, str]:
        raw_keys = [key for key in record.keys() if key and str(key).strip()]
        input_keys = {normalize_field_name(str(key)) for key in raw_keys}
        input_keys_raw = {str(key).lower().strip() for key in raw_keys}

        cleaned: dict[str, str] = {}
        notes_values: list[str] = []
        first_location: Optional[str] = None

        for key in raw_keys:
            canonical = normalize_field_name(str(key))
            value = clean_value(record[key])
            if value is None:
                continue

            if canonical in NOTES_FIELDS:
                if value:
                    notes_values.append(value)
            elif canonical == "location":
                if first_location is None and value:
                    first_location = value
            else:
                cleaned[canonical] = value

            if self.debug:
                LOGGER.info(f"Mapped header '{key}' -> '{canonical}'")

        if notes_values:
            cleaned["notes"] = "\n".join(notes_values)
        if first_location:
            cleaned["location"] = first_location

        aum_parts = [
            value
            for value in (clean_value(record[key]) for key in raw_keys if "aum" in str(key).lower())
            if value
        ]
        if aum_parts:
            cleaned["aum"] = combine_aum_parts(aum_parts)

        self._apply_backfill(cleaned, input_keys | input_keys_raw)
        self._promote_urls(cleaned)

        if cleaned.get("location"):
            city = cleaned["location"].split(",")[0].strip()
            cleaned["location"] = _title_case_words(city)

        firm = cleaned.get("firm")
        if firm and ("http" in firm or re.search(r"[<>]", firm)):
            truncated = firm.split(".")[0].strip()
            if truncated and len(truncated) < len(firm):
                cleaned["firm"] = truncated

        if source is not None:
            self._attach_source(cleaned, source)

        return {key: value for key, value in cleaned.items() if value != ""}

    def _apply_backfill(self, cleaned: dict[str, str], present_keys: set[str]) -> None:
        """Copy name <-> firm only when the missing key never appeared in the input."""
        if "name" not in present_keys and cleaned.get("firm"):
            cleaned["name"] = cleaned["firm"]
            if self.debug:
                LOGGER.info("Backfilled name from firm", extra={"firm": cleaned["firm"]})
        elif "firm" not in present_keys and cleaned.get("name"):
            cleaned["firm"] = cleaned["name"]
            if self.debug:
                LOGGER.info("Backfilled firm from name", extra={"name": cleaned["name"]})

    @staticmethod
    def _promote_urls(cleaned: dict[str, str]) -> None:
        linkedin = ""
        website = ""
        for key in list(cleaned.keys()):
            if key.startswith(SOURCE_KEY_PREFIX):
                continue
            lowered = cleaned[key].lower()
            if "linkedin.com" in lowered:
                linkedin = cleaned.pop(key)
            elif "http" in lowered:
                website = cleaned.pop(key)
        if linkedin:
            cleaned["linkedin"] = linkedin
        if website:
            cleaned["website"] = website

    @staticmethod
    def _attach_source(cleaned: dict[str, str], source: Provenance | Mapping[str, Any]) -> None:
        if isinstance(source, Provenance):
            source_type, filename = source.type, source.filename
        else:
            source_type, filename = source.get("type"), source.get("filename")
        if source_type:
            cleaned["source_type"] = str(source_type)
        if filename:
            cleaned["source_filename"] = str(filename)


def preprocess_record(
    record: Mapping[str, Any],
    source: Optional[Provenance | Mapping[str, Any]] = None,
    debug: bool = False,
) -> dict[str, str]:
    """Convenience wrapper around ``RecordPreprocessor.preprocess``."""
    return RecordPreprocessor(debug=debug).preprocess(record, source)
