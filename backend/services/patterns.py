# backend/services/patterns.py

import re
from dataclasses import dataclass
from typing import FrozenSet, Pattern, Tuple

from services.models import DocumentType

# ==============================================================================
# PATTERN LIBRARY
# ==============================================================================
# Regexes and keyword sets for Indian identity documents. Everything here is
# compiled once at import time and handed by reference to the classifier and
# the extractors; nothing mutates it afterwards.


@dataclass(frozen=True)
class PatternLibrary:
    # Date of birth. Group 1 of every pattern is the date itself.
    dob_patterns: Tuple[Pattern, ...]
    # Runs of digits on one line, possibly separated by spaces or hyphens.
    digit_run: Pattern
    # A 4-4-4 grouped number whose groups may wrap onto the next line.
    wrapped_national_id: Pattern
    national_id_length: int
    national_id_invalid_leading: FrozenSet[str]
    tax_id: Pattern
    phone_patterns: Tuple[Pattern, ...]
    email: Pattern
    # Line-oriented labels.
    name_label: Pattern
    father_label: Pattern
    address_label: Pattern
    postal_code: Pattern
    non_name_tokens: FrozenSet[str]
    # Classifier keyword sets, checked in order. First hit wins.
    document_keywords: Tuple[Tuple[DocumentType, Tuple[str, ...]], ...]
    address_side_keywords: Tuple[str, ...]
    front_side_keywords: Tuple[str, ...]


def build_pattern_library() -> PatternLibrary:
    return PatternLibrary(
        dob_patterns=(
            # Keyword-anchored: "DOB: 15/08/1990", "D.O.B. 15-08-1990", "जन्म तिथि / 15.08.1990"
            re.compile(
                r"(?:\bD\.?\s?O\.?\s?B\b\.?|\bDate\s+of\s+Birth\b|जन्म\s*(?:तिथि|तारीख))"
                r"[\s:/\-]*(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{4})(?!\d)",
                re.IGNORECASE,
            ),
            re.compile(r"(?<!\d)(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{4})(?!\d)"),
        ),
        digit_run=re.compile(r"\d(?:[ \t\-]*\d)*"),
        wrapped_national_id=re.compile(
            r"(?<!\d)\d{4}(?:[ \t\-]*(?:\r?\n)?[ \t\-]*\d{4}){2}(?![ \t\-]*\d)"
        ),
        national_id_length=12,
        national_id_invalid_leading=frozenset({"0", "1"}),
        tax_id=re.compile(r"\b[A-Z]{5}[0-9]{4}[A-Z]\b", re.IGNORECASE),
        phone_patterns=(
            # Country-code prefixed: "+91 9876543210", "+91-9876543210", "91 9876543210"
            re.compile(r"(?<![\d+])(?:\+\d{1,3}[ \-]?|91[ \-])\d{10}(?!\d)"),
            # Bare Indian mobile number.
            re.compile(r"(?<!\d)[6-9]\d{9}(?!\d)"),
            # Mobile number printed as two groups of five.
            re.compile(r"(?<!\d)[6-9]\d{4}[ \-]\d{5}(?!\d)"),
        ),
        email=re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        name_label=re.compile(r"(?:\bname\b|नाम)\s*[:\-|/]?\s*", re.IGNORECASE),
        father_label=re.compile(
            r"(?:\bfather(?:['’`]?s)?(?:\s*name)?|पिता(?:\s*का\s*नाम)?|\bs\s*/\s*o\b|\bd\s*/\s*o\b|\bson\s+of\b)"
            r"\s*[:\-|]?\s*",
            re.IGNORECASE,
        ),
        address_label=re.compile(r"(?:\baddress\b|\baddr\b\.?|पता)\s*[:\-|]?\s*", re.IGNORECASE),
        postal_code=re.compile(r"(?<!\d)\d{6}(?!\d)"),
        non_name_tokens=frozenset({
            "INCOME", "TAX", "DEPARTMENT", "GOVT", "GOVERNMENT", "INDIA",
            "PERMANENT", "ACCOUNT", "NUMBER", "CARD", "AUTHORITY", "UNIQUE",
            "IDENTIFICATION", "DRIVING", "LICENCE", "LICENSE", "TRANSPORT",
            "DOB", "DATE", "BIRTH", "YEAR", "MALE", "FEMALE", "SIGNATURE",
            "ADDRESS", "NAME", "FATHER",
        }),
        document_keywords=(
            (DocumentType.PAN, ("permanent account", "income tax", "आयकर")),
            (DocumentType.AADHAAR, ("aadhaar", "aadhar", "uidai", "unique identification", "आधार")),
            (DocumentType.DRIVING_LICENSE, ("driving licence", "driving license", "transport department", "dl no")),
        ),
        address_side_keywords=("address", "पता"),
        front_side_keywords=("dob", "date of birth", "year of birth", "yob", "male", "जन्म", "पुरुष", "महिला"),
    )


DEFAULT_PATTERNS = build_pattern_library()
