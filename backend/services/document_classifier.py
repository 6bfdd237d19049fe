# backend/services/document_classifier.py

import logging
from typing import Tuple

from services.models import DocumentType
from services.patterns import DEFAULT_PATTERNS, PatternLibrary

logger = logging.getLogger(__name__)


def classify_document(text: str, patterns: PatternLibrary = DEFAULT_PATTERNS) -> Tuple[DocumentType, bool]:
    """
    Assigns a document type and a photo-presence flag from keyword signals.

    How it works:
    - The text is case-folded and checked against each keyword set in order
      (PAN, then Aadhaar, then driving licence). The first set with any keyword
      present decides the type.
    - Unrecognised documents fall back to GOVERNMENT_ID with a photo assumed,
      so the photo region is still masked.
    - The only document reported without a photo is the back side of an
      Aadhaar card: address keywords present, no birth or gender keyword.
    """
    folded = text.casefold()

    for document_type, keywords in patterns.document_keywords:
        if any(keyword in folded for keyword in keywords):
            has_photo = True
            if document_type == DocumentType.AADHAAR:
                has_photo = not _is_address_side(folded, patterns)
            logger.info(f"Classified document as {document_type.value} (has_photo={has_photo}).")
            return document_type, has_photo

    logger.info("No document keywords found. Defaulting to GOVERNMENT_ID with photo.")
    return DocumentType.GOVERNMENT_ID, True


def _is_address_side(folded: str, patterns: PatternLibrary) -> bool:
    has_address = any(k in folded for k in patterns.address_side_keywords)
    has_front_marker = any(k in folded for k in patterns.front_side_keywords)
    return has_address and not has_front_marker
