# backend/services/errors.py


class IDShieldError(Exception):
    """Base class for all errors raised by the ID masking services."""


# --- Recovered inside the extraction engine, never surfaced to callers ---

class EmptyInputError(IDShieldError):
    """The recognized document has no text after trimming."""


class MalformedWordBoxError(IDShieldError):
    """A recognized word carries inverted or out-of-range box coordinates."""

    def __init__(self, word_text: str, reason: str):
        super().__init__(f"Malformed box for word of length {len(word_text)}: {reason}")
        self.reason = reason


# --- Raised by the collaborators around the engine ---

class InvalidUploadError(IDShieldError):
    """The uploaded file could not be decoded into an image."""


class OcrFailure(IDShieldError):
    """Text recognition failed, including the reduced-language retry."""

    error_type = "ocr_processing_error"


class CompositingFailure(IDShieldError):
    """The mask overlays could not be rendered onto the image."""

    error_type = "compositing_error"
