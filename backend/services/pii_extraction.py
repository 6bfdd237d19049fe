# backend/services/pii_extraction.py

import logging
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from presidio_analyzer import AnalyzerEngine

from services.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from services.coordinate_resolver import resolve_exact, resolve_fuzzy, usable_words
from services.document_classifier import classify_document
from services.entity_detection import identify_person_with_presidio
from services.errors import EmptyInputError
from services.face_detection import FaceDetector, FixedRegionFaceDetector
from services.field_extractors import (
    extract_address,
    extract_date_of_birth,
    extract_email,
    extract_father_name,
    extract_name,
    extract_national_id,
    extract_phone,
    extract_tax_id,
)
from services.models import (
    PII_FIELDS,
    BoundingBox,
    ExtractionResult,
    PIIRecord,
    RecognizedDocument,
    RecognizedWord,
)
from services.patterns import DEFAULT_PATTERNS, PatternLibrary
from services.region_aggregator import aggregate_regions
from services.validation import national_id_surface_forms

logger = logging.getLogger(__name__)

# Free-text fields are matched word by word with edit-distance tolerance;
# everything else must appear as a run of adjacent words.
FUZZY_FIELDS = frozenset({"name", "father_name", "address"})

# ==============================================================================
# EXTRACTION ORCHESTRATOR
# ==============================================================================
# Classify -> extract fields -> resolve coordinates -> aggregate regions.
# Each call is self-contained: nothing is cached or stored between documents,
# so concurrent calls from worker threads need no locking.


def extract(document: RecognizedDocument, image_width: int, image_height: int,
            config: EngineConfig = DEFAULT_ENGINE_CONFIG,
            patterns: PatternLibrary = DEFAULT_PATTERNS,
            face_detector: Optional[FaceDetector] = None,
            image: Optional[np.ndarray] = None,
            analyzer: Optional[AnalyzerEngine] = None,
            today: Optional[date] = None) -> ExtractionResult:
    """
    Extracts PII fields from one recognized document and computes the regions to mask.

    Args:
        document: OCR output (full text, confidence, word boxes).
        image_width, image_height: Pixel size of the source image, used to
            discard unusable word boxes and to clamp every region.
        config: Padding, edit-distance and photo-region parameters.
        face_detector: Source of photo regions. Defaults to the fixed region
            from `config`.
        image: Decoded RGB pixels, only needed by detectors that look at them.
        analyzer: Optional Presidio engine used as the last name fallback.

    Returns:
        An ExtractionResult. Documents with no text produce an empty record and
        no regions; this function does not raise for its own logic.
    """
    try:
        text = _require_text(document)
    except EmptyInputError as e:
        logger.info(f"Degenerate result: {e}")
        return ExtractionResult(record=PIIRecord(), regions=[], confidence=document.confidence, degenerate=True)

    # Stage 1: classification, computed once and shared with later stages.
    document_type, has_photo = classify_document(text, patterns)

    # Stage 2: field extraction.
    fields = extract_fields(text, patterns, analyzer=analyzer, today=today)
    record = PIIRecord(**fields, document_type=document_type, has_photo=has_photo)
    logger.info(f"Extracted {len(record.present_fields())} PII field(s): {record.present_fields()}")

    # Stage 3: coordinate resolution for every field that was found.
    words = usable_words(document.words, image_width, image_height)
    field_boxes = resolve_field_coordinates(record, words, config)

    # Stage 4: region aggregation.
    photo_regions = []
    if has_photo:
        detector = face_detector or FixedRegionFaceDetector(config.photo_region)
        photo_regions = detector.detect_face_regions(image_width, image_height, image)
    regions = aggregate_regions(field_boxes, image_width, image_height, config.padding, photo_regions)
    logger.info(f"Produced {len(regions)} mask region(s) for a {image_width}x{image_height} image.")

    return ExtractionResult(record=record, regions=regions, confidence=document.confidence)


def _require_text(document: RecognizedDocument) -> str:
    text = document.full_text or ""
    if not text.strip():
        raise EmptyInputError("Recognized text is empty or whitespace-only.")
    return text


def extract_fields(text: str, patterns: PatternLibrary = DEFAULT_PATTERNS,
                   analyzer: Optional[AnalyzerEngine] = None,
                   today: Optional[date] = None) -> Dict[str, Optional[str]]:
    """Runs every field extractor over the text. Missing fields are None."""
    tax_id = extract_tax_id(text, patterns)
    national_id = extract_national_id(text, patterns)
    father_name = extract_father_name(text, patterns)

    name = extract_name(text, patterns, known_ids=[v for v in (tax_id, national_id) if v], exclude=father_name)
    if name is None and analyzer is not None:
        name = identify_person_with_presidio(analyzer, text, patterns, exclude=father_name)

    return {
        "name": name,
        "father_name": father_name,
        "date_of_birth": extract_date_of_birth(text, patterns, today),
        "national_id": national_id,
        "tax_id": tax_id,
        "phone": extract_phone(text, patterns),
        "email": extract_email(text, patterns),
        "address": extract_address(text, patterns),
    }


def resolve_field_coordinates(record: PIIRecord, words: Sequence[RecognizedWord],
                              config: EngineConfig = DEFAULT_ENGINE_CONFIG) -> List[Tuple[str, List[BoundingBox]]]:
    """
    Looks up word boxes for every non-empty field of the record.

    Resolution is attempted for every extracted field; a field with no boxes
    stays in the record, it just produces no mask region.
    """
    resolved = []
    for field in PII_FIELDS:
        value = getattr(record, field)
        if value is None:
            continue

        targets = national_id_surface_forms(value) if field == "national_id" else [value]
        boxes: List[BoundingBox] = []
        for target in targets:
            if field in FUZZY_FIELDS:
                boxes.extend(resolve_fuzzy(target, words, config.max_edit_distance, config.min_fuzzy_word_length))
            else:
                boxes.extend(resolve_exact(target, words))

        if boxes:
            logger.info(f"Field '{field}' mapped to {len(boxes)} box(es).")
        else:
            logger.warning(f"Could not map field '{field}' to any word boxes.")
        resolved.append((field, boxes))
    return resolved
