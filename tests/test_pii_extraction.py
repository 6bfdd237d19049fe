from datetime import date
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from services.config import EngineConfig
from services.models import (
    DocumentType,
    ExtractionResult,
    MaskRegion,
    PIIRecord,
    RecognizedDocument,
    RegionKind,
)
from services.pii_extraction import extract, extract_fields, resolve_field_coordinates

TODAY = date(2024, 6, 1)
NO_PADDING = EngineConfig(padding=0)


def regions_for(result, field):
    return [r for r in result.regions if r.field == field]


@pytest.mark.parametrize("text", ["", "   ", "\n\t \n"])
def test_empty_text_gives_degenerate_result(word, text):
    document = RecognizedDocument(full_text=text, confidence=42.0, words=[word("JOHN", 0, 0, 10, 10)])
    result = extract(document, 500, 500)
    assert result.degenerate
    assert result.record == PIIRecord()
    assert result.regions == []
    assert result.masked_field_count == 0
    assert result.confidence == 42.0
    assert extract(document, 500, 500) == result


def test_scenario_name_and_date_of_birth(word):
    document = RecognizedDocument(
        full_text="NAME\nJOHN SMITH\nDOB 15/08/1990",
        confidence=88.5,
        words=[
            word("NAME", 10, 10, 60, 30),
            word("JOHN", 10, 40, 60, 60),
            word("SMITH", 70, 40, 130, 60),
            word("DOB", 10, 70, 50, 90),
            word("15/08/1990", 60, 70, 160, 90),
        ],
    )
    result = extract(document, 500, 500, config=NO_PADDING, today=TODAY)

    assert result.record.name == "JOHN SMITH"
    assert result.record.date_of_birth == "15/08/1990"
    assert result.record.national_id is None
    assert result.masked_field_count == 2
    assert result.confidence == 88.5
    assert [(r.left, r.top) for r in regions_for(result, "name")] == [(10, 40), (70, 40)]
    assert regions_for(result, "date_of_birth") == [
        MaskRegion(left=60, top=70, width=100, height=20, kind=RegionKind.TEXT, field="date_of_birth")
    ]


def test_scenario_national_id_with_leading_one_is_rejected(word):
    document = RecognizedDocument(
        full_text="Aadhaar\n1234 5678 9012",
        words=[word("1234", 10, 10, 50, 30), word("5678", 60, 10, 100, 30), word("9012", 110, 10, 150, 30)],
    )
    result = extract(document, 500, 500)
    assert result.record.national_id is None
    assert regions_for(result, "national_id") == []


def test_national_id_region_is_union_of_grouped_words(word):
    document = RecognizedDocument(
        full_text="GOVERNMENT OF INDIA\nRAHUL VERMA\nDOB: 01/01/1990\nMALE\n2345 6789 0123\nआधार",
        words=[
            word("RAHUL", 200, 40, 260, 60),
            word("VERMA", 270, 40, 330, 60),
            word("2345", 200, 200, 240, 220),
            word("6789", 250, 201, 290, 221),
            word("0123", 300, 199, 340, 219),
        ],
    )
    result = extract(document, 500, 500, config=EngineConfig(padding=2), today=TODAY)

    assert result.record.document_type == DocumentType.AADHAAR
    assert result.record.national_id == "234567890123"
    assert result.record.name == "RAHUL VERMA"
    assert regions_for(result, "national_id") == [
        MaskRegion(left=198, top=197, width=144, height=26, kind=RegionKind.TEXT, field="national_id")
    ]


@pytest.mark.parametrize("previous_line, previous_words", [
    ("DOB: 01/01/1990", [("DOB:", 200, 160, 240, 180), ("01/01/1990", 250, 160, 350, 180)]),
    ("Mobile: 9876543210", [("Mobile:", 200, 160, 260, 180), ("9876543210", 270, 160, 370, 180)]),
])
def test_national_id_directly_below_another_number_is_masked(word, previous_line, previous_words):
    document = RecognizedDocument(
        full_text=f"RAHUL VERMA\n{previous_line}\n2345 6789 0123",
        words=[word(*w) for w in previous_words] + [
            word("2345", 200, 200, 240, 220),
            word("6789", 250, 200, 290, 220),
            word("0123", 300, 200, 340, 220),
        ],
    )
    result = extract(document, 500, 500, config=NO_PADDING, today=TODAY)

    assert result.record.national_id == "234567890123"
    assert regions_for(result, "national_id") == [
        MaskRegion(left=200, top=200, width=140, height=20, kind=RegionKind.TEXT, field="national_id")
    ]


def test_country_coded_phone_is_not_reported_as_national_id(word):
    document = RecognizedDocument(
        full_text="Mobile: 91 9876543210",
        words=[word("Mobile:", 10, 10, 70, 30), word("91", 80, 10, 100, 30), word("9876543210", 110, 10, 210, 30)],
    )
    result = extract(document, 500, 500, config=NO_PADDING)

    assert result.record.national_id is None
    assert result.record.phone == "91 9876543210"
    assert result.masked_field_count == 1
    assert regions_for(result, "phone") == [
        MaskRegion(left=80, top=10, width=130, height=20, kind=RegionKind.TEXT, field="phone")
    ]


def test_scenario_pan_card(word):
    document = RecognizedDocument(
        full_text="INCOME TAX DEPARTMENT\nPermanent Account Number\nABCDE1234F",
        words=[word("ABCDE1234F", 40, 300, 200, 330)],
    )
    result = extract(document, 500, 500, config=NO_PADDING)
    assert result.record.tax_id == "ABCDE1234F"
    assert result.record.document_type == DocumentType.PAN
    assert regions_for(result, "tax_id")[0].left == 40


def test_scenario_photo_region_on_500_square_image():
    document = RecognizedDocument(full_text="Election Commission of India\nIdentity Card")
    result = extract(document, 500, 500)
    assert result.record.has_photo
    assert result.regions == [MaskRegion(left=30, top=80, width=160, height=200, kind=RegionKind.PHOTO, field="photo")]


def test_no_photo_region_for_aadhaar_back_side():
    document = RecognizedDocument(full_text="Unique Identification Authority of India\nAddress: 12 MG Road, Bengaluru 560001")
    result = extract(document, 500, 500)
    assert not result.record.has_photo
    assert all(r.kind == RegionKind.TEXT for r in result.regions)


def test_empty_word_list_extracts_fields_without_text_regions():
    document = RecognizedDocument(full_text="ABCDE1234F\nMobile: 9876543210", words=[])
    result = extract(document, 500, 500)
    assert result.record.tax_id == "ABCDE1234F"
    assert result.record.phone == "9876543210"
    assert [r.kind for r in result.regions] == [RegionKind.PHOTO]


def test_malformed_word_boxes_are_skipped(word):
    document = RecognizedDocument(
        full_text="ABCDE1234F",
        words=[word("ABCDE1234F", 200, 10, 100, 30), word("ABCDE1234F", 10, 100, 110, 130)],
    )
    result = extract(document, 500, 500, config=NO_PADDING)
    assert [(r.left, r.top) for r in regions_for(result, "tax_id")] == [(10, 100)]


def test_custom_face_detector_and_config_are_used():
    detector = MagicMock()
    detector.detect_face_regions.return_value = [(5, 5, 10, 10)]
    document = RecognizedDocument(full_text="Identity Card")
    result = extract(document, 50, 40, face_detector=detector, image="pixels")
    detector.detect_face_regions.assert_called_once_with(50, 40, "pixels")
    assert result.regions == [MaskRegion(left=5, top=5, width=10, height=10, kind=RegionKind.PHOTO, field="photo")]


def test_analyzer_fills_in_missing_name():
    text = "Identity Card\nPriya Sharma\nPIN 560038"
    analyzer = MagicMock()
    analyzer.analyze.return_value = [SimpleNamespace(entity_type="PERSON", start=14, end=26, score=0.85)]
    fields = extract_fields(text, analyzer=analyzer)
    assert fields["name"] == "PRIYA SHARMA"


def test_analyzer_not_consulted_when_heuristics_find_a_name():
    analyzer = MagicMock()
    fields = extract_fields("Name: Priya Sharma", analyzer=analyzer)
    assert fields["name"] == "PRIYA SHARMA"
    analyzer.analyze.assert_not_called()


def test_every_extracted_field_gets_a_resolution_attempt():
    record = PIIRecord(name="JOHN", tax_id="ABCDE1234F", phone="9876543210")
    resolved = resolve_field_coordinates(record, [])
    assert [field for field, _ in resolved] == ["name", "tax_id", "phone"]
    assert all(boxes == [] for _, boxes in resolved)


def test_result_serialises_with_camel_case_field_names():
    record = PIIRecord(father_name="RAMESH KUMAR", document_type=DocumentType.PAN, has_photo=True)
    dumped = ExtractionResult(record=record).record.model_dump(by_alias=True, mode="json")
    assert dumped["fatherName"] == "RAMESH KUMAR"
    assert dumped["documentType"] == "PAN"
    assert dumped["hasPhoto"] is True
