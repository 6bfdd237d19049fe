# backend/services/ocr_processing.py

# --- Standard Library and Third-Party Imports ---
import io
import logging
from typing import Any, Dict

import cv2
import fitz  # PyMuPDF is imported as 'fitz'
import numpy as np
import pandas as pd
import pytesseract
from PIL import Image, ImageOps, UnidentifiedImageError

from services.errors import InvalidUploadError, OcrFailure
from services.models import BoundingBox, RecognizedDocument, RecognizedWord

logger = logging.getLogger(__name__)

PDF_RENDER_DPI = 300

# --- Dynamic OCR Profiles ---
# Preprocessing strategies keyed by image quality. One is picked per image
# from its contrast and noise statistics.
OCR_PROFILES = {
    "standard_scan": {"psm": 6, "denoise": True, "thresh_block_size": 29, "thresh_c": 5, "description": "Good for average quality scans and phone photos."},
    "high_quality_digital": {"psm": 6, "denoise": False, "thresh_block_size": 51, "thresh_c": 10, "description": "Best for clean, high-contrast, digitally-born cards."},
    "noisy_or_low_contrast": {"psm": 6, "denoise": True, "thresh_block_size": 15, "thresh_c": 4, "description": "Optimized for blurry photos, glare and poor quality scans."}
}

# ==============================================================================
# 1. DECODING
# ==============================================================================

def load_image(data: bytes, content_type: str) -> Image.Image:
    """
    Decodes an upload into an RGB Pillow image.

    PDFs are rendered from their first page at 300 DPI. Password-protected or
    corrupt files raise InvalidUploadError.
    """
    if not data:
        raise InvalidUploadError("The uploaded file is empty.")

    if content_type == "application/pdf":
        return _render_first_pdf_page(data)

    try:
        image = Image.open(io.BytesIO(data))
        image = ImageOps.exif_transpose(image)
        return image.convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidUploadError(f"The uploaded file is not a readable image: {e}") from e


def _render_first_pdf_page(data: bytes) -> Image.Image:
    try:
        document = fitz.open(stream=data, filetype="pdf")
    except (fitz.FileDataError, RuntimeError, ValueError) as e:
        raise InvalidUploadError("The provided PDF is corrupted, invalid, or is not a standard PDF file.") from e

    try:
        if document.needs_pass:
            raise InvalidUploadError("The provided PDF is password-protected and cannot be processed.")
        if document.page_count == 0:
            raise InvalidUploadError("The provided PDF has no pages.")
        if document.page_count > 1:
            logger.info(f"PDF has {document.page_count} pages. Only the first page is processed.")
        page = document.load_page(0)
        pix = page.get_pixmap(matrix=fitz.Matrix(PDF_RENDER_DPI / 72, PDF_RENDER_DPI / 72))
        # Go through PNG bytes so PIL handles RGB/RGBA/grayscale pixmaps alike.
        return Image.open(io.BytesIO(pix.tobytes("png"))).convert("RGB")
    finally:
        document.close()


# ==============================================================================
# 2. PREPROCESSING
# ==============================================================================

def analyze_image_and_select_profile(image: np.ndarray) -> Dict[str, Any]:
    """
    Analyzes a grayscale image's contrast and noise to select an OCR profile.

    How it works:
    - The standard deviation of pixel intensity measures contrast.
    - The variance of the Laplacian measures sharpness/noise.
    - Fixed thresholds on both pick one entry of OCR_PROFILES.
    """
    mean, std_dev = cv2.meanStdDev(image)
    contrast = std_dev[0][0]
    laplacian_var = cv2.Laplacian(image, cv2.CV_64F).var()
    LOW_CONTRAST_THRESHOLD = 55.0
    HIGH_CONTRAST_THRESHOLD = 80.0
    HIGH_NOISE_THRESHOLD = 850.0
    if laplacian_var > HIGH_NOISE_THRESHOLD or contrast < LOW_CONTRAST_THRESHOLD:
        selected_profile = OCR_PROFILES["noisy_or_low_contrast"]
    elif contrast > HIGH_CONTRAST_THRESHOLD:
        selected_profile = OCR_PROFILES["high_quality_digital"]
    else:
        selected_profile = OCR_PROFILES["standard_scan"]
    logger.info(f"Analysis: Contrast={contrast:.2f}, Noise={laplacian_var:.2f}. Selected Profile: '{selected_profile['description']}'")
    return selected_profile


def preprocess_for_ocr(image: Image.Image):
    """
    Returns (binarized image, profile). No geometric transform is applied, so
    word boxes reported by Tesseract are already in source-image pixels.
    """
    gray = cv2.cvtColor(np.array(image.convert("RGB")), cv2.COLOR_RGB2GRAY)
    profile = analyze_image_and_select_profile(gray)
    if profile['denoise']:
        gray = cv2.fastNlMeansDenoising(gray, None, h=10)
    processed = cv2.adaptiveThreshold(gray, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C, cv2.THRESH_BINARY,
                                      profile['thresh_block_size'], profile['thresh_c'])
    return processed, profile


# ==============================================================================
# 3. RECOGNITION
# ==============================================================================

def run_tesseract(processed_image: np.ndarray, languages: str, psm: int) -> pd.DataFrame:
    # Dictionaries off: they "correct" names and ID numbers into English words.
    tesseract_config = (
        f"--psm {psm} "
        f"-c load_system_dawg=0 "
        f"-c load_freq_dawg=0"
    )
    return pytesseract.image_to_data(
        processed_image,
        lang=languages,
        config=tesseract_config,
        output_type=pytesseract.Output.DATAFRAME,
        # Keep digit-only words as strings ("0123" must not become 123).
        pandas_config={"dtype": {"text": str}, "keep_default_na": False},
    )


def build_recognized_document(ocr_data: pd.DataFrame) -> RecognizedDocument:
    """
    Converts Tesseract's word table into a RecognizedDocument.

    Lines are rebuilt from block/paragraph/line numbers so that line-oriented
    extractors (names, addresses) see the card's layout. Confidence is the
    mean of the non-negative word confidences.
    """
    ocr_data = ocr_data.copy()
    ocr_data['text'] = ocr_data['text'].fillna("").astype(str).str.strip()
    ocr_data = ocr_data[ocr_data['text'] != ""]
    if ocr_data.empty:
        return RecognizedDocument(full_text="", confidence=0.0, words=[])

    words = [
        RecognizedWord(
            text=row['text'],
            box=BoundingBox(
                x0=int(row['left']),
                y0=int(row['top']),
                x1=int(row['left']) + int(row['width']),
                y1=int(row['top']) + int(row['height']),
            ),
        )
        for _, row in ocr_data.iterrows()
    ]

    line_keys = [c for c in ("page_num", "block_num", "par_num", "line_num") if c in ocr_data.columns]
    if line_keys:
        lines = ocr_data.groupby(line_keys, sort=False)['text'].apply(" ".join).tolist()
    else:
        lines = [" ".join(ocr_data['text'])]

    confidences = pd.to_numeric(ocr_data.get('conf', pd.Series(dtype=float)), errors='coerce')
    confidences = confidences[confidences >= 0]
    confidence = float(confidences.mean()) if not confidences.empty else 0.0

    return RecognizedDocument(
        full_text="\n".join(lines),
        confidence=min(100.0, max(0.0, confidence)),
        words=words,
    )


def recognize_document(image: Image.Image, languages: str = "eng+hin", fallback_languages: str = "eng") -> RecognizedDocument:
    """
    Runs OCR on a decoded image.

    A Tesseract failure with the full language set (typically missing Hindi
    traineddata) is retried once with `fallback_languages`. A second failure
    raises OcrFailure. TesseractNotFoundError propagates unchanged: it is a
    server configuration problem, not a property of the image.
    """
    try:
        processed, profile = preprocess_for_ocr(image)
    except cv2.error as e:
        raise OcrFailure(f"Image preprocessing failed: {e}") from e

    try:
        ocr_data = run_tesseract(processed, languages, profile['psm'])
    except pytesseract.TesseractError as e:
        if not fallback_languages or fallback_languages == languages:
            raise OcrFailure(f"Tesseract failed with languages '{languages}': {e}") from e
        logger.warning(f"Tesseract failed with languages '{languages}' ({e}). Retrying with '{fallback_languages}'.")
        try:
            ocr_data = run_tesseract(processed, fallback_languages, profile['psm'])
        except pytesseract.TesseractError as retry_error:
            raise OcrFailure(f"Tesseract failed with languages '{fallback_languages}': {retry_error}") from retry_error

    document = build_recognized_document(ocr_data)
    logger.info(f"OCR completed: {len(document.words)} words, confidence {document.confidence:.1f}.")
    return document
