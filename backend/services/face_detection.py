# backend/services/face_detection.py

import logging
from typing import List, Optional, Protocol, Sequence

import numpy as np

from services.config import DEFAULT_PHOTO_REGION
from services.region_aggregator import Rect

logger = logging.getLogger(__name__)


class FaceDetector(Protocol):
    def detect_face_regions(self, image_width: int, image_height: int,
                            image: Optional[np.ndarray] = None) -> List[Rect]:
        ...


class FixedRegionFaceDetector:
    """Reports the usual photo position of an ID card. Never looks at pixels."""

    def __init__(self, region: Rect = DEFAULT_PHOTO_REGION):
        self.region = tuple(region)

    def detect_face_regions(self, image_width: int, image_height: int,
                            image: Optional[np.ndarray] = None) -> List[Rect]:
        return [self.region]


class SkinToneFaceDetector:
    """
    Rough face finder based on RGB skin-tone rules.

    How it works:
    - Pixels are classified as skin when red dominates within fixed RGB bands.
    - The image is sampled on a `step`-pixel grid. A sample point whose
      neighbourhood (`sample_size` square, every second pixel) is more than
      `min_skin_ratio` skin becomes a square region of twice the sample size.
    - When no image is given, or nothing is found, the fixed photo region is
      reported instead so the photo is never left unmasked.

    It is a heuristic, not face detection: expect misses on dark or
    desaturated scans and hits on skin-coloured backgrounds.
    """

    def __init__(self, fallback: Rect = DEFAULT_PHOTO_REGION, step: int = 10, sample_size: int = 20,
                 min_skin_ratio: float = 0.6):
        self.fallback = FixedRegionFaceDetector(fallback)
        self.step = step
        self.sample_size = sample_size
        self.min_skin_ratio = min_skin_ratio

    @staticmethod
    def skin_mask(image: np.ndarray) -> np.ndarray:
        rgb = np.asarray(image)[..., :3].astype(np.int16)
        r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
        red_green = np.abs(r - g)
        return (
            (r > 120) & (r < 240)
            & (g > 80) & (g < 210)
            & (b > 70) & (b < 190)
            & (r > g) & (r > b)
            & (red_green > 15) & (red_green < 80)
        )

    def detect_face_regions(self, image_width: int, image_height: int,
                            image: Optional[np.ndarray] = None) -> List[Rect]:
        if image is None or np.asarray(image).ndim != 3:
            return self.fallback.detect_face_regions(image_width, image_height)

        mask = self.skin_mask(image)
        height, width = mask.shape
        half = self.sample_size // 2
        face_size = self.sample_size * 2
        regions: List[Rect] = []

        for y in range(0, height, self.step):
            for x in range(0, width, self.step):
                if not mask[y, x] or _inside_any(x, y, regions):
                    continue
                window = mask[max(0, y - half):y + half:2, max(0, x - half):x + half:2]
                if window.size and window.mean() > self.min_skin_ratio:
                    regions.append((max(0, x - face_size // 2), max(0, y - face_size // 2), face_size, face_size))

        if not regions:
            logger.info("Skin-tone detector found no face. Using the fixed photo region.")
            return self.fallback.detect_face_regions(image_width, image_height)
        logger.info(f"Skin-tone detector found {len(regions)} candidate face region(s).")
        return regions


def _inside_any(x: int, y: int, regions: Sequence[Rect]) -> bool:
    return any(left <= x < left + w and top <= y < top + h for left, top, w, h in regions)


def build_face_detector(name: str, photo_region: Rect = DEFAULT_PHOTO_REGION) -> FaceDetector:
    if name == "skin_tone":
        return SkinToneFaceDetector(fallback=photo_region)
    if name != "fixed":
        logger.warning(f"Unknown face detector '{name}'. Using the fixed photo region.")
    return FixedRegionFaceDetector(photo_region)
