import os

# Keep test runs from writing a log file into the working directory.
os.environ.setdefault("IDSHIELD_LOG_FILE", "")

import pytest

from services.models import BoundingBox, RecognizedWord


def make_word(text, x0, y0, x1, y1):
    return RecognizedWord(text=text, box=BoundingBox(x0=x0, y0=y0, x1=x1, y1=y1))


@pytest.fixture
def word():
    """Factory for RecognizedWord objects: word("JOHN", 10, 10, 60, 30)."""
    return make_word
