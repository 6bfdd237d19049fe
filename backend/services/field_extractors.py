# backend/services/field_extractors.py

import logging
import re
from datetime import date
from typing import Callable, Iterable, List, Match, Optional, Pattern, Sequence

from services.patterns import DEFAULT_PATTERNS, PatternLibrary
from services.validation import (
    clean_name_candidate,
    is_valid_date_of_birth,
    is_valid_name,
    is_valid_national_id,
)

logger = logging.getLogger(__name__)

# Lines inspected around a known ID number when looking for the holder's name,
# nearest first. Names sit above the number on most cards.
PROXIMITY_OFFSETS = (-1, -2, -3, 1, 2)
MAX_ADDRESS_FOLLOWING_LINES = 3

# ==============================================================================
# 1. REGEX-DRIVEN EXTRACTORS
# ==============================================================================
# Each extractor tries its patterns in order and returns the first match that
# passes its validator, or None. None is the normal "field absent" outcome.


def _first_validated(text: str, patterns: Iterable[Pattern],
                     validator: Optional[Callable[[str], bool]] = None,
                     group: int = 0) -> Optional[str]:
    for pattern in patterns:
        for match in pattern.finditer(text):
            value = match.group(group).strip()
            if validator is None or validator(value):
                return value
    return None


def extract_date_of_birth(text: str, patterns: PatternLibrary = DEFAULT_PATTERNS,
                          today: Optional[date] = None) -> Optional[str]:
    return _first_validated(
        text, patterns.dob_patterns, lambda value: is_valid_date_of_birth(value, today), group=1
    )


def extract_national_id(text: str, patterns: PatternLibrary = DEFAULT_PATTERNS) -> Optional[str]:
    """
    Finds an Aadhaar-style 12-digit number.

    How it works:
    - Runs of digits on a single line, separated only by spaces or hyphens,
      are collected and their separators stripped, so "2345 6789 0123" and
      "2345-6789-0123" both become "234567890123".
    - A run with exactly 12 digits is a candidate. A longer run is searched
      with a sliding 12-digit window only when it has no separators at all;
      grouped runs of any other length are separate numbers printed together.
    - Runs that are phone numbers (a "+" in front, or the whole run matching
      a phone pattern such as "91 9876543210") are skipped.
    - If no line holds an ID, a 4-4-4 grouped number wrapped over two lines
      is accepted, unless its first group continues a number or date.
    - A candidate starting with 0 or 1 is never accepted. Returns the bare
      digits; use `national_id_surface_forms` to get the printed forms back
      for coordinate resolution.
    """
    length = patterns.national_id_length

    def valid(candidate: str) -> bool:
        return is_valid_national_id(candidate, length, patterns.national_id_invalid_leading)

    for run in patterns.digit_run.finditer(text):
        if _is_phone_run(text, run, patterns):
            continue
        digits = re.sub(r"\D", "", run.group(0))
        if len(digits) == length:
            if valid(digits):
                return digits
        elif len(digits) > length and digits == run.group(0):
            for start in range(0, len(digits) - length + 1):
                if valid(digits[start:start + length]):
                    return digits[start:start + length]

    for match in patterns.wrapped_national_id.finditer(text):
        before = text[:match.start()].rstrip(" \t-")
        if before and (before[-1].isdigit() or before[-1] in "/.+"):
            continue
        digits = re.sub(r"\D", "", match.group(0))
        if valid(digits):
            return digits
    return None


def _is_phone_run(text: str, run: Match, patterns: PatternLibrary) -> bool:
    if run.start() > 0 and text[run.start() - 1] == "+":
        # International phone number, not an ID.
        return True
    return any(p.fullmatch(run.group(0)) for p in patterns.phone_patterns)


def extract_tax_id(text: str, patterns: PatternLibrary = DEFAULT_PATTERNS) -> Optional[str]:
    match = patterns.tax_id.search(text)
    return match.group(0).upper() if match else None


def extract_phone(text: str, patterns: PatternLibrary = DEFAULT_PATTERNS) -> Optional[str]:
    return _first_validated(text, patterns.phone_patterns)


def extract_email(text: str, patterns: PatternLibrary = DEFAULT_PATTERNS) -> Optional[str]:
    match = patterns.email.search(text)
    return match.group(0) if match else None


# ==============================================================================
# 2. LINE-ORIENTED EXTRACTORS
# ==============================================================================

def split_lines(text: str) -> List[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def _accept_name(raw: str, patterns: PatternLibrary) -> Optional[str]:
    if not raw or not raw.strip():
        return None
    cleaned = clean_name_candidate(raw)
    return cleaned if is_valid_name(cleaned, raw, patterns.non_name_tokens) else None


def _after_label(line: str, label: Pattern) -> Optional[str]:
    """Text following the last label occurrence on the line, or None if the label is absent."""
    matches = list(label.finditer(line))
    if not matches:
        return None
    return line[matches[-1].end():]


def _label_adjacent(lines: Sequence[str], index: int, remainder: str, patterns: PatternLibrary) -> Optional[str]:
    # Same-line value ("Name: JOHN SMITH") first, then the next line.
    candidate = _accept_name(remainder, patterns)
    if candidate is None and index + 1 < len(lines):
        candidate = _accept_name(lines[index + 1], patterns)
    return candidate


def extract_father_name(text: str, patterns: PatternLibrary = DEFAULT_PATTERNS) -> Optional[str]:
    lines = split_lines(text)
    for index, line in enumerate(lines):
        remainder = _after_label(line, patterns.father_label)
        if remainder is None:
            continue
        candidate = _label_adjacent(lines, index, remainder, patterns)
        if candidate:
            return candidate
    return None


def extract_name(text: str, patterns: PatternLibrary = DEFAULT_PATTERNS, known_ids: Sequence[str] = (),
                 exclude: Optional[str] = None) -> Optional[str]:
    """
    Best-effort extraction of the document holder's name.

    Heuristics, in fallback order:
    1. Label adjacency: a line carrying a "name" label (and no father indicator);
       the text after the label on that line, otherwise the next line.
    2. Proximity to a known ID: the lines nearest to the one holding an already
       extracted tax or national ID, above it first.

    `exclude` is a value that must not be returned, normally the father's name.
    """
    lines = split_lines(text)

    for index, line in enumerate(lines):
        if patterns.father_label.search(line):
            continue
        remainder = _after_label(line, patterns.name_label)
        if remainder is None:
            continue
        candidate = _label_adjacent(lines, index, remainder, patterns)
        if candidate and candidate != exclude:
            return candidate

    for id_index in _lines_holding_ids(lines, known_ids):
        for offset in PROXIMITY_OFFSETS:
            position = id_index + offset
            if not 0 <= position < len(lines):
                continue
            neighbour = lines[position]
            if re.search(r"\d", neighbour) or _is_label_line(neighbour, patterns):
                continue
            candidate = _accept_name(neighbour, patterns)
            if candidate and candidate != exclude:
                logger.info("Name resolved by proximity to a known ID number.")
                return candidate
    return None


def _lines_holding_ids(lines: Sequence[str], known_ids: Sequence[str]) -> List[int]:
    ids = [i for i in known_ids if i]
    positions = []
    for index, line in enumerate(lines):
        digits = re.sub(r"\D", "", line)
        upper = line.upper()
        if any(value.upper() in upper or (value.isdigit() and value in digits) for value in ids):
            positions.append(index)
    return positions


def _is_label_line(line: str, patterns: PatternLibrary) -> bool:
    return any(p.search(line) for p in (patterns.name_label, patterns.father_label, patterns.address_label))


def extract_address(text: str, patterns: PatternLibrary = DEFAULT_PATTERNS) -> Optional[str]:
    """
    Collects the address block that follows an address label, up to and
    including the first line carrying a 6-digit postal code.
    """
    lines = split_lines(text)
    for index, line in enumerate(lines):
        remainder = _after_label(line, patterns.address_label)
        if remainder is None:
            continue

        parts = []
        if remainder.strip():
            parts.append(remainder)
        cursor = index + 1
        while not _has_postal_code(parts, patterns) and cursor < min(len(lines), index + 1 + MAX_ADDRESS_FOLLOWING_LINES):
            following = lines[cursor]
            if patterns.name_label.search(following) or patterns.father_label.search(following):
                break
            parts.append(following)
            cursor += 1

        address = ", ".join(_tidy_address_part(p) for p in parts if _tidy_address_part(p))
        if len(address) > 10:
            return address
    return None


def _has_postal_code(parts: Sequence[str], patterns: PatternLibrary) -> bool:
    return bool(parts) and patterns.postal_code.search(parts[-1]) is not None


def _tidy_address_part(part: str) -> str:
    return re.sub(r"\s+", " ", part).strip(" ,;|")
