# backend/services/image_masking.py

import base64
import io
import logging
from typing import Sequence, Tuple

from PIL import Image, ImageDraw

from services.errors import CompositingFailure
from services.models import MaskRegion

logger = logging.getLogger(__name__)

# ==============================================================================
# FINAL ACTION: MASKING
# ==============================================================================

def apply_mask_regions(image: Image.Image, regions: Sequence[MaskRegion],
                       fill: Tuple[int, int, int] = (0, 0, 0)) -> Image.Image:
    """
    Paints an opaque rectangle over every mask region and returns a new image.

    The source image is left untouched. Overlapping regions are simply painted
    twice. Any Pillow failure is raised as CompositingFailure.
    """
    try:
        masked = image.convert("RGB").copy()
        draw = ImageDraw.Draw(masked)
        for region in regions:
            # ImageDraw rectangles include their end coordinate.
            draw.rectangle(
                [region.left, region.top, region.left + region.width - 1, region.top + region.height - 1],
                fill=fill,
            )
    except (OSError, ValueError) as e:
        logger.error(f"An error occurred while compositing mask regions: {e}", exc_info=True)
        raise CompositingFailure(f"Failed to apply mask overlays: {e}") from e

    logger.info(f"Applied {len(regions)} opaque mask region(s).")
    return masked


def encode_image_data_url(image: Image.Image, image_format: str = "JPEG") -> str:
    """Encodes an image as a base64 data URL for the JSON response."""
    buffer = io.BytesIO()
    try:
        image.convert("RGB").save(buffer, format=image_format)
    except (OSError, ValueError, KeyError) as e:
        raise CompositingFailure(f"Failed to encode image as {image_format}: {e}") from e
    mime = Image.MIME.get(image_format.upper(), "image/jpeg")
    return f"data:{mime};base64,{base64.b64encode(buffer.getvalue()).decode('ascii')}"
