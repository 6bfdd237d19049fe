from types import SimpleNamespace
from unittest.mock import MagicMock

from services.entity_detection import identify_person_with_presidio

TEXT = "INCOME TAX DEPARTMENT\nMeena Iyer"


def person(start, end, score):
    return SimpleNamespace(entity_type="PERSON", start=start, end=end, score=score)


def test_highest_scoring_valid_person_wins():
    analyzer = MagicMock()
    analyzer.analyze.return_value = [person(0, 10, 0.6), person(22, 32, 0.9)]
    assert identify_person_with_presidio(analyzer, TEXT) == "MEENA IYER"
    analyzer.analyze.assert_called_once_with(text=TEXT, language="en", entities=["PERSON"])


def test_invalid_candidates_are_skipped():
    analyzer = MagicMock()
    # "INCOME TAX" scores higher but is an institutional phrase.
    analyzer.analyze.return_value = [person(0, 10, 0.95), person(22, 32, 0.7)]
    assert identify_person_with_presidio(analyzer, TEXT) == "MEENA IYER"


def test_low_scores_are_ignored():
    analyzer = MagicMock()
    analyzer.analyze.return_value = [person(22, 32, 0.3)]
    assert identify_person_with_presidio(analyzer, TEXT) is None


def test_excluded_value_is_not_returned():
    analyzer = MagicMock()
    analyzer.analyze.return_value = [person(22, 32, 0.9)]
    assert identify_person_with_presidio(analyzer, TEXT, exclude="MEENA IYER") is None


def test_analyzer_errors_are_logged_not_raised():
    analyzer = MagicMock()
    analyzer.analyze.side_effect = ValueError("model not loaded")
    assert identify_person_with_presidio(analyzer, TEXT) is None
