# backend/services/entity_detection.py

import logging
from typing import Optional

from presidio_analyzer import AnalyzerEngine
from presidio_analyzer.nlp_engine import NlpEngineProvider

from services.patterns import DEFAULT_PATTERNS, PatternLibrary
from services.validation import clean_name_candidate, is_valid_name

logger = logging.getLogger(__name__)

# Presidio scores below this are too weak to stand in for a labelled name.
MIN_PERSON_SCORE = 0.5


def build_presidio_analyzer(spacy_model: str = "en_core_web_lg") -> AnalyzerEngine:
    """
    Creates the Presidio analyzer used as the last name-extraction fallback.

    Loading the spaCy model is slow, so this runs once at startup and the
    engine is shared across requests; analysis does not mutate it.
    """
    provider = NlpEngineProvider(nlp_configuration={
        "nlp_engine_name": "spacy",
        "models": [{"lang_code": "en", "model_name": spacy_model}],
    })
    return AnalyzerEngine(nlp_engine=provider.create_engine(), supported_languages=["en"])


def identify_person_with_presidio(analyzer: AnalyzerEngine, text: str, patterns: PatternLibrary = DEFAULT_PATTERNS,
                                  exclude: Optional[str] = None) -> Optional[str]:
    """
    Uses Microsoft Presidio to find a PERSON entity when the line heuristics found no name.

    Candidates are taken highest score first and go through the same cleaning
    and validation as label-adjacent names.
    """
    try:
        results = analyzer.analyze(text=text, language="en", entities=["PERSON"])
    except Exception as e:
        logger.error(f"Presidio analysis failed: {e}")
        return None

    for res in sorted(results, key=lambda r: (-r.score, r.start)):
        if res.score < MIN_PERSON_SCORE:
            break
        raw = text[res.start:res.end]
        cleaned = clean_name_candidate(raw)
        if cleaned != exclude and is_valid_name(cleaned, raw, patterns.non_name_tokens):
            logger.info(f"Name resolved by Presidio PERSON entity (score {res.score:.2f}).")
            return cleaned
    return None
