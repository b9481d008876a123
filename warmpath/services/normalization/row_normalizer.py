"""
Row Normalizer

Maps a preprocessed row onto a Contact: fuzzy header matching, value-shape
inference for unknown keys, per-field normalization with confidence scores,
and the required-field checks.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from warmpath.core.config import settings
from warmpath.core.exceptions import NormalizationError
from warmpath.schemas.contact import (
    Contact,
    ErrorKind,
    NormalizationResult,
    Provenance,
    RowError,
)
from warmpath.services.normalization import field_inference as fi
from warmpath.services.normalization.constants import REQUIRED_FIELDS, SOURCE_KEY_PREFIX
from warmpath.utils.logging import get_logger

LOGGER = get_logger(__name__)

HEADER_MATCH_CONFIDENCE = 0.9

# Canonical field -> Contact attribute, for fields stored as trimmed text
_PLAIN_FIELDS = {
    "school": ("school", 0.8),
    "degree": ("degree", 0.8),
    "personal_connections": ("personal_connections", 0.7),
    "interests": ("interests", 0.7),
    "job_history": ("job_history_raw", 0.7),
    "education_history": ("education_raw", 0.7),
}


class _RowState:
    """Mutable working copy of a contact while one row is normalized."""

    def __init__(self, debug: bool):
        self.fields: dict[str, Any] = {}
        self.confidence: dict[str, float] = {}
        self.logs: list[str] = []
        self.errors: list[RowError] = []
        self.debug = debug

    def log(self, message: str) -> None:
        if self.debug:
            self.logs.append(message)
            LOGGER.info(message)

    def set(self, attribute: str, value: Any, field: str, confidence: float) -> None:
        self.fields[attribute] = value
        self.confidence[field] = confidence

    def append_notes(self, text: str) -> None:
        if not text:
            return
        existing = self.fields.get("notes")
        self.fields["notes"] = f"{existing}\n{text}" if existing else text

    def demote(self, field: str, label: str, value: str) -> None:
        """Keep an invalid value as a notes entry and drop any confidence claimed for it."""
        self.append_notes(f"Possible {label}: {value}")
        self.confidence.pop(field, None)
        self.errors.append(
            RowError(kind=ErrorKind.INVALID_FIELD, field=field, message=f"Invalid {field}: {value}")
        )
        self.log(f"Invalid {field} format: \"{value}\"")


class RowNormalizer:
    """Normalizes preprocessed rows into Contacts."""

    def __init__(self, header_match_threshold: Optional[float] = None):
        self.header_match_threshold = (
            header_match_threshold
            if header_match_threshold is not None
            else settings.resolution.header_match_threshold
        )
        self._handlers: dict[str, Callable[[_RowState, str], None]] = {
            "name": self._handle_name,
            "firm": self._handle_firm,
            "email": self._handle_email,
            "role": self._handle_role,
            "linkedin": self._handle_linkedin,
            "twitter": self._handle_twitter,
            "website": self._handle_website,
            "location": self._handle_location,
            "notes": self._handle_notes,
            "aum": self._handle_aum,
        }

    def normalize(
        self,
        row: Mapping[str, Optional[str]],
        source: Optional[Provenance] = None,
        debug: bool = False,
    ) -> NormalizationResult:
        """
        Normalize one row.

        Args:
            row: Preprocessed (or raw string) key -> value mapping
            source: Provenance of the row. source_type/source_filename keys in
                the row fill in whatever is not given here.
            debug: Record decision-level log entries

        Returns:
            NormalizationResult with the contact, confidences, logs and row errors.
            Never raises for missing or invalid fields.

        Raises:
            NormalizationError: The row is not a mapping
        """
        if not isinstance(row, Mapping):
            raise NormalizationError(f"Expected a mapping row, got {type(row).__name__}")

        state = _RowState(debug)
        provenance = self._build_provenance(row, source)

        mapped: dict[str, str] = {}
        for key, value in row.items():
            if value is None or value == "" or key.startswith(SOURCE_KEY_PREFIX):
                continue
            field = fi.match_field_from_header(key, self.header_match_threshold)
            if field:
                state.log(f"Mapped header \"{key}\" -> \"{field}\"")
                mapped[field] = value
                state.confidence[field] = HEADER_MATCH_CONFIDENCE
            else:
                state.log(f"Unmapped header: \"{key}\"")
                mapped[key] = value

        self._collapse_single_entity(state, mapped)

        for key, value in mapped.items():
            value = str(value)
            if not value.strip():
                continue
            field = key if self._is_canonical(key) else fi.infer_field_from_value(value)
            if field and self._is_canonical(field):
                self._process_field(state, field, value)
            else:
                state.append_notes(f"{key}: {value}")
                state.log(f"Added unknown field \"{key}\" to notes")

        self._apply_fallbacks(state)

        for required in REQUIRED_FIELDS:
            if not state.fields.get(required):
                message = f"Missing required field \"{required}\""
                state.logs.append(f"ERROR: {message}")
                state.errors.append(
                    RowError(kind=ErrorKind.MISSING_REQUIRED_FIELD, field=required, message=message)
                )

        if state.fields.get("firm"):
            state.fields["firm_slug"] = fi.create_slug(state.fields["firm"])

        # Header matches claim 0.9 even for fields later demoted or dropped
        confidence = {
            field: score
            for field, score in state.confidence.items()
            if self._field_is_set(state, field)
        }

        contact = Contact(source=provenance, confidence=confidence, **state.fields)
        if state.errors:
            LOGGER.warning(
                "Row normalized with errors",
                extra={"contact_name": contact.name, "errors": [e.message for e in state.errors]},
            )

        return NormalizationResult(
            contact=contact,
            confidence=confidence,
            logs=state.logs,
            errors=state.errors,
        )

    @staticmethod
    def _is_canonical(field: str) -> bool:
        return field in fi.HEADER_MAP

    @staticmethod
    def _field_is_set(state: _RowState, field: str) -> bool:
        attribute = {
            "linkedin": "linkedin_url",
            "twitter": "twitter_handle",
            "aum": "assets_under_management",
        }.get(field) or _PLAIN_FIELDS.get(field, (field,))[0]
        return bool(state.fields.get(attribute))

    @staticmethod
    def _build_provenance(row: Mapping[str, Optional[str]], source: Optional[Provenance]) -> Provenance:
        row_type = row.get("source_type")
        row_filename = row.get("source_filename")
        if source is None:
            return Provenance(
                type=row_type or "unknown",
                filename=row_filename,
                imported_at=datetime.now(timezone.utc),
            )
        updates: dict[str, Any] = {}
        if source.filename is None and row_filename:
            updates["filename"] = row_filename
        if source.imported_at is None:
            updates["imported_at"] = datetime.now(timezone.utc)
        return source.model_copy(update=updates) if updates else source

    def _process_field(self, state: _RowState, field: str, value: str) -> None:
        handler = self._handlers.get(field)
        if handler:
            handler(state, value)
            return
        if field in _PLAIN_FIELDS:
            attribute, confidence = _PLAIN_FIELDS[field]
            state.set(attribute, value.strip(), field, confidence)
            state.log(f"Set {field}: \"{value.strip()}\"")
            return
        state.append_notes(f"{field}: {value}")
        state.log(f"Added unknown field \"{field}\" to notes")

    # Field handlers

    def _handle_name(self, state: _RowState, value: str) -> None:
        name = fi.normalize_person_name(value)
        if name:
            state.set("name", name, "name", 0.9)
            state.log(f"Set name: \"{name}\"")

    def _handle_firm(self, state: _RowState, value: str) -> None:
        firm = fi.normalize_firm_name(value)
        if firm:
            state.set("firm", firm, "firm", 0.9)
            state.log(f"Set firm: \"{firm}\"")

    def _handle_email(self, state: _RowState, value: str) -> None:
        if fi.is_valid_email(value):
            email = fi.normalize_email(value)
            state.set("email", email, "email", 0.95)
            state.log(f"Set email: \"{email}\"")
        else:
            state.demote("email", "email", value)

    def _handle_role(self, state: _RowState, value: str) -> None:
        role = fi.normalize_role(value)
        state.set("role", role, "role", 0.8)
        state.log(f"Set role: \"{role}\"")

    def _handle_linkedin(self, state: _RowState, value: str) -> None:
        url = fi.normalize_linkedin(value)
        if fi.is_valid_linkedin_url(url):
            state.set("linkedin_url", url, "linkedin", 0.95)
            state.log(f"Set LinkedIn: \"{url}\"")
        else:
            state.demote("linkedin", "LinkedIn", value)

    def _handle_twitter(self, state: _RowState, value: str) -> None:
        handle = fi.normalize_twitter(value)
        if handle:
            state.set("twitter_handle", handle, "twitter", 0.8)
            state.log(f"Set Twitter: \"{handle}\"")
        else:
            state.demote("twitter", "Twitter", value)

    def _handle_website(self, state: _RowState, value: str) -> None:
        url = fi.normalize_website(value)
        if fi.is_valid_website_url(url):
            state.set("website", url, "website", 0.9)
            state.log(f"Set website: \"{url}\"")
        else:
            state.demote("website", "website", value)

    def _handle_location(self, state: _RowState, value: str) -> None:
        location = fi.normalize_location(value)
        state.set("location", location, "location", 0.8)
        state.log(f"Set location: \"{location}\"")

    def _handle_notes(self, state: _RowState, value: str) -> None:
        state.append_notes(value.strip())
        state.confidence["notes"] = 0.7
        state.log(f"Added to notes: \"{value[:30]}...\"")

    def _handle_aum(self, state: _RowState, value: str) -> None:
        aum = fi.normalize_aum(value)
        state.set("assets_under_management", aum, "aum", 0.8)
        state.log(f"Set AUM: \"{aum}\"")

    @staticmethod
    def _collapse_single_entity(state: _RowState, mapped: dict[str, str]) -> None:
        """
        Treat identical raw name and firm values as one entity.

        The key that appears first in the row is normalized with its own
        handler and the fallback copies the result onto the other, so both
        fields end up equal.
        """
        name = mapped.get("name")
        firm = mapped.get("firm")
        if name is None or firm is None or str(name).strip() != str(firm).strip():
            return
        keys = list(mapped)
        duplicate = "firm" if keys.index("name") < keys.index("firm") else "name"
        del mapped[duplicate]
        state.log(f"Name and firm share the value \"{str(name).strip()}\"; deriving {duplicate}")

    @staticmethod
    def _apply_fallbacks(state: _RowState) -> None:
        name = state.fields.get("name")
        firm = state.fields.get("firm")
        if firm and not name:
            state.fields["name"] = firm
            state.log(f"Using firm name \"{firm}\" as contact name")
        elif name and not firm:
            state.fields["firm"] = name
            state.log(f"Using contact name \"{name}\" as firm name")


def normalize_row(
    row: Mapping[str, Optional[str]],
    source: Optional[Provenance] = None,
    debug: bool = False,
) -> NormalizationResult:
    """Convenience wrapper around ``RowNormalizer.normalize`` with default settings."""
    return RowNormalizer().normalize(row, source=source, debug=debug)
