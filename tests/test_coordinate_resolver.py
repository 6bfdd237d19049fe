from services.coordinate_resolver import (
    enclosing_box,
    normalize_for_matching,
    resolve_exact,
    resolve_fuzzy,
    usable_words,
)
from services.models import BoundingBox


def test_exact_merges_adjacent_words_into_one_box(word):
    words = [
        word("Aadhaar", 10, 100, 90, 120),
        word("1234", 100, 102, 150, 122),
        word("5678", 160, 100, 210, 121),
        word("9012", 220, 101, 270, 124),
    ]
    boxes = resolve_exact("1234 5678 9012", words)
    assert boxes == [BoundingBox(x0=100, y0=100, x1=270, y1=124)]
    assert boxes[0] == enclosing_box([w.box for w in words[1:]])


def test_exact_single_token_contained_in_word(word):
    words = [word("No:ABCDE1234F", 5, 5, 120, 25)]
    assert resolve_exact("ABCDE1234F", words) == [BoundingBox(x0=5, y0=5, x1=120, y1=25)]


def test_exact_is_case_insensitive(word):
    words = [word("abcde1234f", 0, 0, 50, 10)]
    assert len(resolve_exact("ABCDE1234F", words)) == 1


def test_exact_keeps_every_disjoint_occurrence(word):
    words = [
        word("9876543210", 0, 0, 100, 20),
        word("Alt", 0, 30, 30, 50),
        word("9876543210", 0, 60, 100, 80),
    ]
    assert resolve_exact("9876543210", words) == [
        BoundingBox(x0=0, y0=0, x1=100, y1=20),
        BoundingBox(x0=0, y0=60, x1=100, y1=80),
    ]


def test_exact_requires_adjacent_sequence(word):
    words = [word("2345", 0, 0, 40, 20), word("XXXX", 50, 0, 90, 20), word("0123", 100, 0, 140, 20)]
    assert resolve_exact("2345 6789 0123", words) == []


def test_exact_partial_run_at_end_of_document(word):
    words = [word("2345", 0, 0, 40, 20), word("6789", 50, 0, 90, 20)]
    assert resolve_exact("2345 6789 0123", words) == []


def test_exact_empty_inputs(word):
    assert resolve_exact("   ", [word("x", 0, 0, 1, 1)]) == []
    assert resolve_exact("2345", []) == []


def test_normalize_for_matching():
    assert normalize_for_matching("  Smith,  J.  ") == "smith j"


def test_fuzzy_accepts_two_substitutions_and_rejects_three(word):
    two = word("SHORMO", 0, 0, 60, 20)
    three = word("SXORMO", 0, 30, 60, 50)
    assert resolve_fuzzy("SHARMA", [two, three]) == [two.box]


def test_fuzzy_matches_words_contained_in_target(word):
    words = [word("John", 10, 10, 50, 30), word("Smith,", 60, 10, 120, 30), word("DOB", 10, 40, 40, 60)]
    assert resolve_fuzzy("JOHN SMITH", words) == [words[0].box, words[1].box]


def test_fuzzy_matches_word_containing_target(word):
    words = [word("Name:RAHUL", 0, 0, 90, 20)]
    assert resolve_fuzzy("Rahul", words) == [words[0].box]


def test_fuzzy_ignores_short_words(word):
    words = [word("Jo", 0, 0, 20, 20), word("J.", 30, 0, 40, 20)]
    assert resolve_fuzzy("JO SMITH", words) == []


def test_fuzzy_edit_distance_is_configurable(word):
    words = [word("SHORMO", 0, 0, 60, 20)]
    assert resolve_fuzzy("SHARMA", words, max_edit_distance=1) == []


def test_usable_words_skips_malformed_boxes(word):
    good = word("GOOD", 10, 10, 50, 30)
    words = [
        good,
        word("INVERTED", 50, 10, 10, 30),
        word("NEGATIVE", -5, 10, 20, 30),
        word("OUTSIDE", 600, 10, 650, 30),
    ]
    assert usable_words(words, 500, 500) == [good]
