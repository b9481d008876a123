"""Header matching, value-shape inference and per-field normalizers."""

import re
from typing import Callable, Optional

from rapidfuzz.distance import Levenshtein

from warmpath.services.normalization.constants import (
    AUM_LABEL,
    BARE_HANDLE_PATTERN,
    CONNECTION_KEYWORDS,
    EMAIL_PATTERN,
    FIRM_LEGAL_SUFFIXES,
    HEADER_MAP,
    LINKEDIN_URL_PATTERN,
    LOCATION_ALIASES,
    LOCATION_TERMS,
    LONG_TEXT_MIN_LENGTH,
    MIDDLE_INITIAL,
    NAME_PREFIXES,
    NAME_SUFFIXES,
    ROLE_ARTICLES,
    TWITTER_HANDLE_PATTERN,
    TWITTER_URL_PATTERN,
    VALID_LINKEDIN_URL,
    VALID_WEBSITE_URL,
)
from warmpath.utils.canonical_key import url_slug

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_WHITESPACE = re.compile(r"\s+")


def clean_for_comparison(text: str) -> str:
    return _NON_ALNUM.sub("", text.lower())


def header_similarity(header: str, alias: str) -> float:
    """Normalized edit-distance similarity in [0, 1] on alphanumeric-only, lower-case text."""
    return Levenshtein.normalized_similarity(clean_for_comparison(header), clean_for_comparison(alias))


def match_field_from_header(header: str, threshold: float = 0.7) -> Optional[str]:
    """Best canonical field for a header, or None when nothing clears ``threshold``."""
    lowered = header.lower().strip()
    if lowered in HEADER_MAP:
        return lowered

    cleaned = clean_for_comparison(header)
    if not cleaned:
        return None
    if cleaned == "familyoffice":
        return "firm"

    best_match: Optional[str] = None
    best_score = 0.0
    for field, aliases in HEADER_MAP.items():
        for alias in aliases:
            score = header_similarity(cleaned, alias)
            if score > best_score and score > threshold:
                best_score = score
                best_match = field
    return best_match


# Value-shape inference. Evaluated top to bottom, first match wins.

_URL_SHAPE = re.compile(r"^https?://[^ ]+\.(?:com|org|net|io|ai|co|vc|xyz)")
_CITY_STATE = re.compile(r"^[a-z .'-]+,\s*[a-z]{2}\b")
_CURRENCY_SHAPE = re.compile(r"[$€£]\s?[\d,]+(?:\.\d+)?|\b\d+(?:\.\d+)?\s?(?:mm|m|b|bn|k)\b")
_LOCATION_TERMS_PATTERN = re.compile(r"\b(?:" + "|".join(re.escape(term) for term in LOCATION_TERMS) + r")\b")
_CONNECTION_PATTERN = re.compile(r"\b(?:" + "|".join(re.escape(kw) for kw in CONNECTION_KEYWORDS) + r")")

InferenceRule = tuple[Callable[[str], bool], Callable[[str], str]]


def _always(field: str) -> Callable[[str], str]:
    return lambda _value: field


def _url_field(value: str) -> str:
    if "linkedin.com" in value:
        return "linkedin"
    if "twitter.com" in value or "x.com/" in value:
        return "twitter"
    return "website"


INFERENCE_RULES: list[InferenceRule] = [
    (lambda v: bool(_URL_SHAPE.match(v)), _url_field),
    (lambda v: bool(EMAIL_PATTERN.match(v)), _always("email")),
    (lambda v: bool(_LOCATION_TERMS_PATTERN.search(v) or _CITY_STATE.match(v)), _always("location")),
    (lambda v: bool(_CURRENCY_SHAPE.search(v)), _always("aum")),
    (lambda v: bool(_CONNECTION_PATTERN.search(v)), _always("personal_connections")),
    (lambda v: len(v) > LONG_TEXT_MIN_LENGTH and bool(re.search(r"\s", v)), _always("notes")),
]


def infer_field_from_value(value: str, rules: Optional[list[InferenceRule]] = None) -> Optional[str]:
    """Guess the canonical field of a value from its shape alone."""
    if not value:
        return None
    lowered = value.lower().strip()
    for predicate, field_for in rules or INFERENCE_RULES:
        if predicate(lowered):
            return field_for(lowered)
    return None


# Per-field normalizers

def collapse_whitespace(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip()


def _title_word(word: str) -> str:
    """Title-case one word, leaving mixed-case words (McDonald, iCapital) alone."""
    if word.islower() or word.isupper():
        return "-".join(part[:1].upper() + part[1:].lower() for part in word.split("-"))
    return word


def normalize_person_name(value: str) -> str:
    name = collapse_whitespace(value)
    name = NAME_PREFIXES.sub("", name)
    name = NAME_SUFFIXES.sub("", name).strip(" ,")

    parts = name.split(" ")
    if len(parts) > 2:
        parts = [parts[0]] + [p for p in parts[1:-1] if not MIDDLE_INITIAL.match(p)] + [parts[-1]]
    return " ".join(_title_word(part) for part in parts if part)


def normalize_firm_name(value: str) -> str:
    words = []
    for word in collapse_whitespace(value).split(" "):
        bare = word.strip(".,").lower()
        if bare in FIRM_LEGAL_SUFFIXES:
            words.append(word.upper())
        elif word.isupper() and len(word) <= 4:
            # Acronyms such as KKR stay as written
            words.append(word)
        else:
            words.append(_title_word(word))
    return " ".join(words)


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value.strip()))


def normalize_email(value: str) -> str:
    return value.strip().lower()


def normalize_role(value: str) -> str:
    return ROLE_ARTICLES.sub("", collapse_whitespace(value))


def normalize_location(value: str) -> str:
    location = collapse_whitespace(value).lower()
    return LOCATION_ALIASES.get(location, location)


def normalize_aum(value: str) -> str:
    return AUM_LABEL.sub("", collapse_whitespace(value))


def _force_https(url: str) -> str:
    if url.startswith("http://"):
        return "https://" + url[len("http://"):]
    if not url.startswith("https://"):
        return f"https://{url}"
    return url


def normalize_linkedin(value: str) -> str:
    value = value.strip()
    extracted = LINKEDIN_URL_PATTERN.search(value)
    if extracted:
        return _force_https(extracted.group(0))
    if BARE_HANDLE_PATTERN.match(value):
        return f"https://www.linkedin.com/in/{value}/"
    if value.lower().startswith(("linkedin.com", "www.linkedin.com")):
        return _force_https(value)
    return value


def is_valid_linkedin_url(url: str) -> bool:
    return bool(VALID_LINKEDIN_URL.match(url))


def normalize_website(value: str) -> str:
    url = value.strip()
    return _force_https(url) if url else url


def is_valid_website_url(url: str) -> bool:
    return bool(VALID_WEBSITE_URL.match(url))


def normalize_twitter(value: str) -> Optional[str]:
    """``@handle`` from a handle or profile URL, or None when neither shape matches."""
    value = value.strip()
    from_url = TWITTER_URL_PATTERN.search(value)
    if from_url:
        return f"@{from_url.group(1)}"
    handle = TWITTER_HANDLE_PATTERN.match(value)
    if handle:
        return f"@{handle.group(1)}"
    return None


def create_slug(value: str) -> str:
    return url_slug(value)
