"""
Image utility functions
"""

import cv2
import numpy as np
from typing import Tuple

def fit_within(width: int, height: int,
               target_size: Tuple[int, int],
               allow_upscale: bool = False) -> Tuple[int, int]:
    """Largest size with the same aspect ratio that fits the target box"""
    target_w, target_h = target_size
    scale = min(target_w / width, target_h / height)
    if not allow_upscale:
        scale = min(scale, 1.0)

    new_w = max(1, int(width * scale))
    new_h = max(1, int(height * scale))
    return new_w, new_h

def resize_maintain_aspect(image: np.ndarray,
                          target_size: Tuple[int, int],
                          allow_upscale: bool = False) -> np.ndarray:
    """Resize image maintaining aspect ratio"""
    h, w = image.shape[:2]
    new_w, new_h = fit_within(w, h, target_size, allow_upscale)

    if (new_w, new_h) == (w, h):
        return image

    return cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)
