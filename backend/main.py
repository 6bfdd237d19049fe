from fastapi import FastAPI, UploadFile, File, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.concurrency import run_in_threadpool # The key import for non-blocking execution
import os
import logging
import sys
import time

import numpy as np
import pytesseract

from services.config import load_engine_config
from services.errors import CompositingFailure, InvalidUploadError, OcrFailure
from services.face_detection import build_face_detector
from services.image_masking import apply_mask_regions, encode_image_data_url
from services.models import DocumentType
from services.ocr_processing import load_image, recognize_document
from services.pii_extraction import extract

# --- Logging Configuration ---
# Configure logging for the entire application, reading level from environment variable
log_level_str = os.getenv("IDSHIELD_LOG_LEVEL", "INFO").upper()
log_level = getattr(logging, log_level_str, logging.INFO)
log_file = os.getenv("IDSHIELD_LOG_FILE", "masking_process.log")

log_handlers = [logging.StreamHandler(sys.stdout)]
if log_file:
    log_handlers.insert(0, logging.FileHandler(log_file, mode='w'))

logging.basicConfig(
    level=log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=log_handlers
)

# --- Engine and OCR Configuration ---
ENGINE_CONFIG = load_engine_config()
FACE_DETECTOR = build_face_detector(os.getenv("IDSHIELD_FACE_DETECTOR", "fixed").strip().lower(), ENGINE_CONFIG.photo_region)
OCR_LANGUAGES = os.getenv("IDSHIELD_OCR_LANGUAGES", "eng+hin")
OCR_FALLBACK_LANGUAGES = os.getenv("IDSHIELD_OCR_FALLBACK_LANGUAGES", "eng")
MAX_UPLOAD_BYTES = int(os.getenv("IDSHIELD_MAX_UPLOAD_MB", "10")) * 1024 * 1024

SUPPORTED_IMAGE_FORMATS = ["JPEG", "PNG", "GIF", "BMP", "TIFF", "PDF"]

SUPPORTED_DOCUMENT_TYPES = {
    DocumentType.AADHAAR.value: "Aadhaar card (आधार कार्ड): 12-digit national ID, name, DOB, address",
    DocumentType.PAN.value: "PAN card (स्थायी लेखा संख्या): 10-character tax ID, name, father's name, DOB",
    DocumentType.DRIVING_LICENSE.value: "Driving licence: name, DOB, address",
    DocumentType.GOVERNMENT_ID.value: "Other government IDs: best-effort extraction, photo always masked",
}

SUPPORTED_PII_FIELDS = {
    "name": "Card holder's name (English & Hindi), matched with OCR error tolerance",
    "fatherName": "Father's name (S/O, D/O, Father's Name labels)",
    "dateOfBirth": "Date of birth (DD/MM/YYYY, DD-MM-YYYY, DD.MM.YYYY)",
    "nationalId": "Aadhaar number (12 digits, never starting with 0 or 1)",
    "taxId": "PAN number (5 letters, 4 digits, 1 letter)",
    "phone": "Mobile number (10 digits, optional country code)",
    "email": "Email address",
    "address": "Postal address block ending in a 6-digit PIN code",
    "photo": "Profile photo (estimated region)",
}

# --- FastAPI App Initialization ---
app = FastAPI(
    title="IDShield AI Backend",
    description="API for detecting and masking personal information on scanned identity documents. Nothing is stored.",
    version="1.0.0"
)

# --- CORS Middleware (Crucial for Frontend Integration) ---
origins_str = os.getenv("IDSHIELD_CORS_ORIGINS", "http://localhost:5173,http://localhost:8000")
origins = [o.strip() for o in origins_str.split(',') if o.strip()]

logging.info(f"CORS Origins configured: {origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Presidio Analyzer Initialization ---
# Optional last-resort name detector. Off by default: it needs a downloaded spaCy model.
analyzer = None
if os.getenv("IDSHIELD_ENABLE_NER", "false").strip().lower() in ("1", "true", "yes"):
    try:
        from services.entity_detection import build_presidio_analyzer
        analyzer = build_presidio_analyzer(os.getenv("IDSHIELD_SPACY_MODEL", "en_core_web_lg"))
        logging.info("Presidio AnalyzerEngine initialized successfully.")
    except Exception as e:
        logging.error(f"Presidio AnalyzerEngine could not be initialized, name NER fallback disabled: {e}")
        analyzer = None

# --- Helper Functions ---

def process_document_image(data: bytes, content_type: str) -> dict:
    """
    Synchronous helper containing the CPU-bound pipeline: decode, OCR, extract, mask.
    It is executed in a thread pool by `run_in_threadpool` to avoid blocking the server.

    Raises:
        InvalidUploadError, OcrFailure, CompositingFailure: handled by the endpoint.
    """
    started = time.perf_counter()

    logging.info("Step 1: Decoding upload.")
    image = load_image(data, content_type)
    image_width, image_height = image.size

    logging.info(f"Step 2: Running OCR on a {image_width}x{image_height} image.")
    document = recognize_document(image, OCR_LANGUAGES, OCR_FALLBACK_LANGUAGES)

    logging.info("Step 3: Extracting PII and computing mask regions.")
    result = extract(
        document,
        image_width,
        image_height,
        config=ENGINE_CONFIG,
        face_detector=FACE_DETECTOR,
        image=np.asarray(image),
        analyzer=analyzer,
    )

    logging.info(f"Step 4: Applying {len(result.regions)} mask region(s).")
    masked = apply_mask_regions(image, result.regions)

    return {
        "originalImage": encode_image_data_url(image),
        "maskedImage": encode_image_data_url(masked),
        "detectedPII": result.record.model_dump(by_alias=True, mode="json", exclude={"document_type", "has_photo"}),
        "documentType": result.record.document_type.value,
        "hasPhoto": result.record.has_photo,
        "maskedFieldCount": result.masked_field_count,
        "confidence": round(result.confidence, 2),
        "extractedText": document.full_text,
        "regions": [r.model_dump(mode="json") for r in result.regions],
        "processingInfo": {
            "imageWidth": image_width,
            "imageHeight": image_height,
            "wordCount": len(document.words),
            "regionCount": len(result.regions),
            "ocrLanguages": OCR_LANGUAGES,
            "processingTimeMs": int((time.perf_counter() - started) * 1000),
        },
    }

# --- API Endpoints ---
@app.get("/", summary="Root Endpoint", tags=["General"])
async def read_root():
    """Root endpoint with a welcome message and API documentation link."""
    return {"message": "Welcome to IDShield AI API! Visit /docs for API documentation."}

@app.get("/health", summary="API Health Check", tags=["General"])
@app.get("/api/v1/health", summary="API Health Check", tags=["General"])
async def health_check():
    """Returns a status to indicate that the API is running and what it can do."""
    return {
        "status": "ok",
        "message": "IDShield AI API is healthy!",
        "capabilities": ["ocr", "pii_extraction", "photo_masking", "name_ner_fallback" if analyzer else "name_heuristics"],
        "supportedDocuments": list(SUPPORTED_DOCUMENT_TYPES),
        "supportedFormats": SUPPORTED_IMAGE_FORMATS,
    }

@app.get("/api/v1/supported-types", summary="Supported document types and PII fields", tags=["General"])
async def get_supported_types():
    """Returns the document types the classifier knows and the PII fields that can be masked."""
    return {
        "documentTypes": SUPPORTED_DOCUMENT_TYPES,
        "piiFields": SUPPORTED_PII_FIELDS,
        "supportedFormats": SUPPORTED_IMAGE_FORMATS,
        "maxUploadMB": MAX_UPLOAD_BYTES // (1024 * 1024),
    }

@app.post("/api/v1/image",
          summary="Detect and mask personal information on an ID document",
          response_description="Original and masked images with the detected PII",
          tags=["Masking"])
async def mask_image(image: UploadFile = File(...)):
    """
    Handles the document upload and delegates the CPU-intensive work to a background thread.

    - **Validates**: Image or PDF content type, size limit.
    - **Processes**: OCR, PII extraction, coordinate mapping, opaque masking.
    - **Returns**: Both images as base64 data URLs plus the extracted fields.
      Nothing is written to disk or retained after the response.
    """
    # --- Step 1: Validate file type ---
    content_type = (image.content_type or "").lower()
    if not (content_type.startswith("image/") or content_type == "application/pdf"):
        logging.error(f"File validation failed: unsupported content type '{content_type}'.")
        raise HTTPException(status_code=400, detail="Invalid file type. Only image files and PDFs are allowed.")

    # --- Step 2: Read into memory with a size cap ---
    data = await image.read(MAX_UPLOAD_BYTES + 1)
    if len(data) > MAX_UPLOAD_BYTES:
        logging.warning(f"Upload rejected: '{image.filename}' exceeds {MAX_UPLOAD_BYTES} bytes.")
        raise HTTPException(status_code=413, detail=f"File too large. Maximum size allowed is {MAX_UPLOAD_BYTES // (1024 * 1024)}MB.")

    logging.info(f"Received file: '{image.filename}' ({content_type}, {len(data)} bytes)")

    # --- Step 3: Delegate the blocking pipeline to the thread pool ---
    try:
        result = await run_in_threadpool(process_document_image, data, content_type)

    except InvalidUploadError as e:
        logging.warning(f"Upload rejected: '{image.filename}': {e}")
        raise HTTPException(status_code=400, detail=str(e))

    except pytesseract.TesseractNotFoundError:
        logging.critical("Tesseract OCR engine not found. Please ensure Tesseract is installed and in your system's PATH.")
        raise HTTPException(status_code=500, detail="Server configuration error: OCR engine not found.")

    except (OcrFailure, CompositingFailure) as e:
        logging.error(f"Processing failed for '{image.filename}': {e}")
        raise HTTPException(status_code=500, detail={"error_type": e.error_type, "message": str(e)})

    except Exception as e:
        logging.error(f"An unexpected error occurred in the mask_image endpoint for '{image.filename}': {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected internal server error occurred.")

    logging.info(f"Successfully processed '{image.filename}': {result['maskedFieldCount']} field(s), {len(result['regions'])} region(s).")
    return {"success": True, "message": "Image processed successfully", "data": result}
