"""
Reflow provider advert descriptions into readable paragraphs.

The provider sends each description as one unbroken string ("...full service
history.Features:Heated SeatsParking Sensors•Sat Nav"). reflow() runs an
ordered list of small named steps over it. Every step is a pure str -> str
function and the composition is idempotent: reflow(reflow(x)) == reflow(x).

Brand terms with internal capitals (CarPlay, McLaren, ...) are swapped for
placeholders before any splitting and restored at the end.
"""

import re
from typing import Callable

PROTECTED_TERMS = [
    "Apple CarPlay",
    "Android Auto",
    "CarPlay",
    "McLaren",
    "BlueMotion",
    "BlueHDi",
    "EcoBoost",
    "EcoBlue",
    "SkyActiv",
    "TwinPower",
    "TwinAir",
    "MultiAir",
    "PureTech",
    "SatNav",
    "AutoTrader",
    "xDrive",
    "sDrive",
    "iDrive",
]

SECTION_HEADERS = [
    "Standard Equipment",
    "Optional Extras",
    "Key Features",
    "Specification",
    "Highlights",
    "Equipment",
    "Features",
    "Options",
    "Extras",
]

BULLET_MARKERS = "•●▪►✓✔★"

# Placeholder delimiters: control characters that never occur in advert text
_PH_START = "\x02"
_PH_END = "\x03"
_PLACEHOLDER_RE = re.compile(_PH_START + r"(\d+)" + _PH_END)

_SENTENCE_BREAK_RE = re.compile(r"(?<=[a-z)" + _PH_END + r"])\.(?=[A-Z" + _PH_START + r"])")
_HEADER_RE = re.compile(
    r"(?<=\S)(?=(?:" + "|".join(re.escape(h) for h in SECTION_HEADERS) + r"):)"
)
_BULLET_RE = re.compile(r"(?<=\S)(?=[" + BULLET_MARKERS + r"])")
_CAPITALISED_RUN_RE = re.compile(r"(?<![A-Za-z])(?:[A-Z][a-z]+){2,}(?![A-Za-z])")
_CAPITALISED_WORD_RE = re.compile(r"[A-Z][a-z]+")
_EXCESS_BREAKS_RE = re.compile(r"\n{3,}")
_VOWELS = set("aeiouy")

_TERMS_LONGEST_FIRST = sorted(PROTECTED_TERMS, key=len, reverse=True)


def normalize_text(text: str) -> str:
    """Unify line endings and drop stray placeholder delimiters."""
    text = text.replace(_PH_START, "").replace(_PH_END, "")
    return text.replace("\r\n", "\n").replace("\r", "\n")


def protect_terms(text: str) -> str:
    for index, term in enumerate(_TERMS_LONGEST_FIRST):
        text = text.replace(term, f"{_PH_START}{index}{_PH_END}")
    return text


def break_sentences(text: str) -> str:
    """Paragraph break after a full stop glued to the next sentence."""
    return _SENTENCE_BREAK_RE.sub(".\n\n", text)


def break_section_headers(text: str) -> str:
    """"...history.Features:" style headers start a new paragraph."""
    return _HEADER_RE.sub("\n\n", text)


def break_bullets(text: str) -> str:
    return _BULLET_RE.sub("\n", text)


def _looks_like_word(part: str) -> bool:
    return len(part) >= 3 and any(ch in _VOWELS for ch in part.lower())


def _split_run(match: re.Match) -> str:
    parts = _CAPITALISED_WORD_RE.findall(match.group(0))
    if all(_looks_like_word(p) for p in parts):
        return "\n".join(parts)
    return match.group(0)


def split_concatenated_words(text: str) -> str:
    """"SeatsParking" -> "Seats\\nParking" when every piece reads as a word."""
    return _CAPITALISED_RUN_RE.sub(_split_run, text)


def collapse_breaks(text: str) -> str:
    return _EXCESS_BREAKS_RE.sub("\n\n", text)


def restore_terms(text: str) -> str:
    return _PLACEHOLDER_RE.sub(lambda m: _TERMS_LONGEST_FIRST[int(m.group(1))], text)


def trim(text: str) -> str:
    return text.strip()


REFLOW_STEPS: list[tuple[str, Callable[[str], str]]] = [
    ("normalize_text", normalize_text),
    ("protect_terms", protect_terms),
    ("break_sentences", break_sentences),
    ("break_section_headers", break_section_headers),
    ("break_bullets", break_bullets),
    ("split_concatenated_words", split_concatenated_words),
    ("collapse_breaks", collapse_breaks),
    ("restore_terms", restore_terms),
    ("trim", trim),
]


def reflow(text: str | None) -> str:
    """Apply every reflow step in order."""
    if not text:
        return ""
    for _name, step in REFLOW_STEPS:
        text = step(text)
    return text


def with_attention_grabber(description: str, grabber: str | None) -> str:
    """Prepend the advert headline as an emphasised first line."""
    if not grabber or not grabber.strip():
        return description
    headline = f"**{grabber.strip()}**"
    if description.startswith(headline):
        return description
    if not description:
        return headline
    return f"{headline}\n\n{description}"
