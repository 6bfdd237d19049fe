# backend/services/config.py

import logging
import os
from dataclasses import dataclass
from typing import Tuple

logger = logging.getLogger(__name__)

# (left, top, width, height) of the photo on a typical ID card scan. A coarse
# approximation, not the output of any detector.
DEFAULT_PHOTO_REGION = (30, 80, 160, 200)


@dataclass(frozen=True)
class EngineConfig:
    """Tunable parameters of the extraction engine. Built once and shared read-only."""
    padding: int = 5
    max_edit_distance: int = 2
    min_fuzzy_word_length: int = 3
    photo_region: Tuple[int, int, int, int] = DEFAULT_PHOTO_REGION


DEFAULT_ENGINE_CONFIG = EngineConfig()


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer value for {name}: {raw!r}. Using {default}.")
        return default


def _region_from_env(name: str, default: Tuple[int, int, int, int]) -> Tuple[int, int, int, int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        parts = tuple(int(p.strip()) for p in raw.split(","))
    except ValueError:
        parts = ()
    if len(parts) != 4 or parts[2] <= 0 or parts[3] <= 0:
        logger.warning(f"Ignoring malformed {name}={raw!r}; expected 'left,top,width,height'.")
        return default
    return parts


def load_engine_config() -> EngineConfig:
    """Reads engine overrides from the environment, falling back to the defaults."""
    return EngineConfig(
        padding=max(0, _int_from_env("IDSHIELD_MASK_PADDING", DEFAULT_ENGINE_CONFIG.padding)),
        max_edit_distance=max(0, _int_from_env("IDSHIELD_MAX_EDIT_DISTANCE", DEFAULT_ENGINE_CONFIG.max_edit_distance)),
        min_fuzzy_word_length=DEFAULT_ENGINE_CONFIG.min_fuzzy_word_length,
        photo_region=_region_from_env("IDSHIELD_PHOTO_REGION", DEFAULT_ENGINE_CONFIG.photo_region),
    )
