"""Alias tables and patterns shared by record preprocessing and row normalization."""

import re

# Raw header aliases used by the preprocessor. Order matters: the first
# canonical key whose alias matches a header wins.
COLUMN_ALIASES: dict[str, list[str]] = {
    "name": ["name", "full name", "contact name", "person", "individual", "contact"],
    "firm": [
        "firm", "company", "organization", "org", "fund", "investment firm",
        "family office", "capital", "partners", "management", "advisory",
        "holdings", "company name",
    ],
    "role": ["role", "title", "position", "job title", "job", "occupation"],
    "email": ["email", "email address", "contact email", "e-mail"],
    "location": [
        "location", "city", "hq", "place", "region", "area", "geography",
        "headquarters", "office", "base", "office location",
    ],
    "linkedin": ["linkedin", "linkedin url", "linkedin profile", "li", "linkedin.com"],
    "website": ["website", "url", "web", "site", "homepage", "web address"],
    "aum": [
        "aum", "assets", "fund size", "assets under management",
        "capital under management", "total assets", "assets managed", "fund assets",
    ],
    "notes": [
        "description", "summary", "about", "overview", "details",
        "information", "profile", "notes",
    ],
    "personal_connections": [
        "connections", "connection count", "conns", "network size", "network",
        "connections count", "total connections", "network connections",
        "1st tier", "2nd tier", "3rd tier",
    ],
}

# Canonical field aliases used by the normalizer's fuzzy header match.
HEADER_MAP: dict[str, list[str]] = {
    "name": ["name", "contact", "person", "individual"],
    "firm": [
        "firm", "company", "organization", "org", "fund", "investment firm",
        "family office", "capital", "partners", "management", "advisory", "holdings",
    ],
    "location": [
        "location", "city", "hq", "place", "region", "area", "geography",
        "headquarters", "office", "base",
    ],
    "linkedin": ["linkedin", "linkedin url", "linkedin profile", "li", "linkedin.com"],
    "website": ["website", "url", "web", "site", "homepage", "web address"],
    "aum": [
        "aum", "assets", "fund size", "assets under management",
        "capital under management", "total assets", "assets managed", "fund assets",
    ],
    "notes": [
        "description", "summary", "about", "overview", "details",
        "information", "profile", "notes",
    ],
    "personal_connections": [
        "connections", "connection count", "conns", "network size", "network",
        "connections count", "total connections", "network connections",
        "1st tier", "2nd tier", "3rd tier",
    ],
    "email": ["email", "email address", "contact email"],
    "role": ["role", "title", "position", "job title"],
    "twitter": ["twitter", "twitter url", "twitter profile", "twitter.com"],
    "interests": ["interests", "hobbies", "likes", "topics"],
    "school": ["school", "education", "university", "college", "alma mater", "academic"],
    "degree": ["degree", "degrees", "qualification"],
    "job_history": ["job history", "work history", "employment history", "experience"],
    "education_history": ["education history", "schools attended"],
}

NOTES_FIELDS = ("notes", "description", "summary", "about")

# Keys written by the preprocessor itself; never run through alias mapping
SOURCE_KEY_PREFIX = "source_"

REQUIRED_FIELDS = ("name", "firm")

LOCATION_TERMS = (
    "nyc", "new york", "san francisco", "london", "boston", "la", "chicago",
    "austin", "singapore", "hong kong", "dubai", "tokyo", "paris", "berlin",
    "miami", "los angeles", "seattle", "toronto", "vancouver", "sydney", "melbourne",
)

LOCATION_ALIASES = {
    "new york city": "new york",
    "nyc": "new york",
}

# Unicode spaces (non-breaking, zero-width and friends) replaced by a plain space
_SPACE_CODEPOINTS = (0x00A0, 0x1680, 0x180E, *range(0x2000, 0x200C), 0x202F, 0x205F, 0x3000, 0xFEFF)
UNICODE_SPACES = re.compile("[" + "".join(chr(c) for c in _SPACE_CODEPOINTS) + "]")
CURLY_SINGLE_QUOTES = re.compile("[" + chr(0x2018) + chr(0x2019) + "]")
CURLY_DOUBLE_QUOTES = re.compile("[" + chr(0x201C) + chr(0x201D) + "]")
HORIZONTAL_WHITESPACE = re.compile(r"[ \t\f\v\r]+")
LINE_BREAKS = re.compile(r" ?\n[\s]*")

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
LINKEDIN_URL_PATTERN = re.compile(r"https?://(?:www\.)?linkedin\.com/in/[a-zA-Z0-9_-]+/?")
VALID_LINKEDIN_URL = re.compile(r"^https://(?:www\.)?linkedin\.com/in/[a-zA-Z0-9_-]+/?")
VALID_WEBSITE_URL = re.compile(r"^https://[a-zA-Z0-9][-a-zA-Z0-9.]*\.[a-zA-Z]{2,}")
TWITTER_URL_PATTERN = re.compile(r"(?:twitter|x)\.com/@?([A-Za-z0-9_]{1,15})", re.IGNORECASE)
TWITTER_HANDLE_PATTERN = re.compile(r"^@?([A-Za-z0-9_]{1,15})$")
BARE_HANDLE_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")

NAME_PREFIXES = re.compile(r"^(?:mr|mrs|ms|miss|dr|prof)\.?\s+", re.IGNORECASE)
NAME_SUFFIXES = re.compile(
    r"(?:,?\s+(?:jr|sr|ii|iii|iv|phd|ph\.d|md|cfa|cpa|esq|mba)\.?)+$", re.IGNORECASE
)
MIDDLE_INITIAL = re.compile(r"^[A-Za-z]\.?$")

FIRM_LEGAL_SUFFIXES = ("llc", "inc", "ltd", "lp", "llp")
AUM_LABEL = re.compile(r"^(?:aum|assets|assets under management|fund size)\s*:\s*", re.IGNORECASE)
ROLE_ARTICLES = re.compile(r"^(?:the|a|an)\s+", re.IGNORECASE)

CONNECTION_KEYWORDS = (
    "1st tier", "connection", "family office", "introduced", "connected",
    "knows", "met", "introduction", "referral",
)

# Notes fallback threshold for free text without a recognizable shape
LONG_TEXT_MIN_LENGTH = 20
