# backend/services/region_aggregator.py

import logging
from typing import List, Optional, Sequence, Tuple

from services.models import BoundingBox, MaskRegion, RegionKind

logger = logging.getLogger(__name__)

# (left, top, width, height)
Rect = Tuple[int, int, int, int]


def clamp_region(left: int, top: int, right: int, bottom: int, image_width: int, image_height: int,
                 kind: RegionKind, field: Optional[str] = None) -> Optional[MaskRegion]:
    """Truncates a rectangle to the image. Returns None when nothing of it is left."""
    left, top = max(0, left), max(0, top)
    right, bottom = min(image_width, right), min(image_height, bottom)
    width, height = right - left, bottom - top
    if width <= 0 or height <= 0:
        return None
    return MaskRegion(left=left, top=top, width=width, height=height, kind=kind, field=field)


def aggregate_regions(field_boxes: Sequence[Tuple[str, Sequence[BoundingBox]]], image_width: int, image_height: int,
                      padding: int = 5, photo_regions: Sequence[Rect] = ()) -> List[MaskRegion]:
    """
    Turns resolved word boxes into the final list of mask regions.

    How it works:
    - Every text box is grown by `padding` pixels on each side, then clamped
      to the image. Regions that end up empty are dropped.
    - Boxes are deduplicated within a field only. Overlaps between fields are
      left alone; compositing opaque overlays twice is harmless.
    - Photo regions are clamped but not padded, and follow the text regions.
    """
    if image_width <= 0 or image_height <= 0:
        logger.warning(f"Image size {image_width}x{image_height} is not usable. No mask regions produced.")
        return []

    regions = []
    for field, boxes in field_boxes:
        for box in dict.fromkeys(boxes):
            region = clamp_region(
                box.x0 - padding, box.y0 - padding, box.x1 + padding, box.y1 + padding,
                image_width, image_height, RegionKind.TEXT, field,
            )
            if region is None:
                logger.debug(f"Dropped an out-of-bounds region for field '{field}'.")
                continue
            regions.append(region)

    for left, top, width, height in photo_regions:
        region = clamp_region(left, top, left + width, top + height, image_width, image_height, RegionKind.PHOTO, "photo")
        if region is not None:
            regions.append(region)

    return regions
