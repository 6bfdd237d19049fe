# backend/services/validation.py

import logging
import re
import string
from datetime import date
from typing import FrozenSet, List, Optional

logger = logging.getLogger(__name__)

# Characters removed from a name candidate before it is judged.
_NAME_NOISE = str.maketrans({ch: " " for ch in string.punctuation + string.digits + "|‘’“”"})
_WHITESPACE = re.compile(r"\s+")
_DATE_PARTS = re.compile(r"(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})")

MIN_YEAR = 1900


def is_valid_date_of_birth(value: str, today: Optional[date] = None) -> bool:
    """
    Checks day, month and year ranges of a D[D]/M[M]/YYYY string.

    The check is range-only: 31/02/1990 passes because days are not checked
    against the length of the month.
    """
    match = _DATE_PARTS.fullmatch(value.strip())
    if not match:
        return False
    day, month, year = (int(g) for g in match.groups())
    current_year = (today or date.today()).year
    return 1 <= day <= 31 and 1 <= month <= 12 and MIN_YEAR <= year <= current_year


def is_valid_national_id(digits: str, length: int = 12, invalid_leading: FrozenSet[str] = frozenset("01")) -> bool:
    """A national ID is `length` digits and never starts with 0 or 1. There is no checksum."""
    return len(digits) == length and digits.isdigit() and digits[0] not in invalid_leading


def national_id_surface_forms(digits: str) -> List[str]:
    """
    Re-derives the ways a national ID is usually printed.

    The extractor works on digits with all grouping stripped, so the resolver
    needs every plausible printed form to find the number among the OCR words.
    """
    groups = [digits[i:i + 4] for i in range(0, len(digits), 4)]
    forms = [digits, " ".join(groups), "-".join(groups)]
    # Keep order, drop duplicates (a short input yields identical forms).
    return list(dict.fromkeys(forms))


def clean_name_candidate(raw: str) -> str:
    """Strips pipes, digits and punctuation, collapses whitespace and uppercases."""
    cleaned = raw.translate(_NAME_NOISE)
    return _WHITESPACE.sub(" ", cleaned).strip().upper()


def is_valid_name(cleaned: str, raw: str, non_name_tokens: FrozenSet[str]) -> bool:
    """
    Accepts a cleaned name candidate when:
    - its length is strictly between 2 and 50,
    - the raw line it came from is not purely numeric,
    - none of its words is an institutional or label token ("INCOME", "TAX", ...).
    """
    if not (2 < len(cleaned) < 50):
        return False
    compact = re.sub(r"[\s\-/.]", "", raw)
    if compact.isdigit():
        return False
    if any(token in non_name_tokens for token in cleaned.split()):
        logger.debug("Rejected name candidate containing a non-name token.")
        return False
    return True
