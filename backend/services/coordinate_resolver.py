# backend/services/coordinate_resolver.py

import logging
import re
import string
from typing import List, Sequence

from rapidfuzz.distance import Levenshtein

from services.errors import MalformedWordBoxError
from services.models import BoundingBox, RecognizedWord

logger = logging.getLogger(__name__)

_PUNCTUATION = str.maketrans({ch: " " for ch in string.punctuation + "|‘’“”"})
_WHITESPACE = re.compile(r"\s+")


def normalize_for_matching(text: str) -> str:
    """Lowercases, strips punctuation and collapses whitespace."""
    return _WHITESPACE.sub(" ", text.translate(_PUNCTUATION)).strip().lower()


def enclosing_box(boxes: Sequence[BoundingBox]) -> BoundingBox:
    return BoundingBox(
        x0=min(b.x0 for b in boxes),
        y0=min(b.y0 for b in boxes),
        x1=max(b.x1 for b in boxes),
        y1=max(b.y1 for b in boxes),
    )


# ==============================================================================
# 1. WORD BOX SANITY
# ==============================================================================

def check_word_box(word: RecognizedWord, image_width: int, image_height: int) -> None:
    box = word.box
    if min(box.x0, box.y0, box.x1, box.y1) < 0:
        raise MalformedWordBoxError(word.text, "negative coordinate")
    if box.x1 < box.x0 or box.y1 < box.y0:
        raise MalformedWordBoxError(word.text, "inverted corners")
    if box.x0 >= image_width or box.y0 >= image_height:
        raise MalformedWordBoxError(word.text, "box starts outside the image")


def usable_words(words: Sequence[RecognizedWord], image_width: int, image_height: int) -> List[RecognizedWord]:
    """Drops words whose boxes cannot be placed on the image. One bad box never aborts the request."""
    kept = []
    for word in words:
        try:
            check_word_box(word, image_width, image_height)
        except MalformedWordBoxError as e:
            logger.warning(f"Skipping word at ({word.box.x0}, {word.box.y0}): {e.reason}")
            continue
        kept.append(word)
    return kept


# ==============================================================================
# 2. RESOLUTION MODES
# ==============================================================================

def resolve_exact(target: str, words: Sequence[RecognizedWord]) -> List[BoundingBox]:
    """
    Maps a structured value (ID number, phone, date) onto runs of adjacent words.

    How it works:
    - The target is split on whitespace into tokens.
    - A run starts at any word that contains the first token (case-insensitive)
      and is confirmed when each following word contains the next token.
    - Each confirmed run yields one box enclosing all of its words. Runs do not
      overlap, and every run in the document is kept: the same number may be
      printed twice on a card.
    """
    tokens = [t.lower() for t in target.split()]
    if not tokens:
        return []

    texts = [w.text.lower() for w in words]
    boxes = []
    index = 0
    while index <= len(words) - len(tokens):
        if all(tokens[k] in texts[index + k] for k in range(len(tokens))):
            boxes.append(enclosing_box([w.box for w in words[index:index + len(tokens)]]))
            index += len(tokens)
        else:
            index += 1
    return boxes


def resolve_fuzzy(target: str, words: Sequence[RecognizedWord], max_edit_distance: int = 2,
                  min_word_length: int = 3) -> List[BoundingBox]:
    """
    Maps free text (names, addresses) onto individual words, tolerating OCR errors.

    A word is accepted when, after normalisation, it is contained in the target,
    contains the target, or is within `max_edit_distance` edits of it. Accepted
    words contribute their own boxes; nothing is merged because word
    segmentation of names is unreliable.
    """
    normalized_target = normalize_for_matching(target)
    if not normalized_target:
        return []

    boxes = []
    for word in words:
        candidate = normalize_for_matching(word.text)
        if len(candidate) < min_word_length:
            continue
        if (
            candidate in normalized_target
            or normalized_target in candidate
            or Levenshtein.distance(candidate, normalized_target) <= max_edit_distance
        ):
            boxes.append(word.box)
    return boxes
