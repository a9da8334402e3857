# core/quality.py

import logging
from dataclasses import dataclass, asdict
from typing import Optional

import cv2
import numpy as np

from photosweep.config import QualityConfig
from photosweep.core.errors import DecodeError
from photosweep.core.pixel_source import ImageSource, PixelBuffer, decode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QualityReport:
    """Objective quality metrics, all in [0, 1]"""
    brightness: float
    contrast: float
    sharpness: float
    quality: float
    is_screenshot: bool
    dark_ratio: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    fallback: bool = False

    @classmethod
    def neutral(cls) -> 'QualityReport':
        """Record used when the image could not be decoded"""
        return cls(brightness=0.5, contrast=0.5, sharpness=0.5, quality=0.5,
                   is_screenshot=False, fallback=True)

    def is_blurry(self, threshold: float = 0.7) -> bool:
        return self.quality < threshold

    def to_dict(self) -> dict:
        return asdict(self)


class QualityAnalyzer:
    """
    Brightness, contrast, sharpness, composite quality and screenshot
    classification from a grayscale buffer
    """

    def __init__(self, config: Optional[QualityConfig] = None):
        self.config = config or QualityConfig()

    def analyze(self, buffer: PixelBuffer) -> QualityReport:
        pixels = buffer.pixels.astype(np.float64)

        brightness = self.calculate_brightness(pixels)
        contrast = self.calculate_contrast(pixels)
        sharpness = self.calculate_sharpness(pixels)
        quality = self.calculate_overall_quality(brightness, contrast, sharpness)
        dark_ratio = self.calculate_dark_ratio(pixels)

        return QualityReport(
            brightness=brightness,
            contrast=contrast,
            sharpness=sharpness,
            quality=quality,
            is_screenshot=dark_ratio > self.config.screenshot_dark_ratio,
            dark_ratio=dark_ratio,
            width=buffer.width,
            height=buffer.height,
        )

    def analyze_source(self, source: ImageSource,
                       filename: Optional[str] = None) -> QualityReport:
        """
        Decode and analyze. Analysis is best effort: undecodable images get
        the neutral report instead of an exception.
        """
        try:
            buffer = decode(source, filename)
        except DecodeError as e:
            logger.warning("Quality analysis fell back to neutral values: %s", e)
            return QualityReport.neutral()
        return self.analyze(buffer)

    def calculate_brightness(self, pixels: np.ndarray) -> float:
        return float(np.mean(pixels) / 255.0)

    def calculate_contrast(self, pixels: np.ndarray) -> float:
        # population standard deviation
        return float(min(np.std(pixels) / self.config.contrast_scale, 1.0))

    def calculate_sharpness(self, pixels: np.ndarray) -> float:
        """Mean absolute 4-neighbour Laplacian over interior pixels"""
        height, width = pixels.shape
        if height < 3 or width < 3:
            return 0.0

        # ksize=1 is the plain [[0,1,0],[1,-4,1],[0,1,0]] kernel; the border
        # rows and columns are dropped so the border mode never matters
        laplacian = cv2.Laplacian(pixels, cv2.CV_64F, ksize=1)[1:-1, 1:-1]
        return float(min(np.mean(np.abs(laplacian)) / 255.0, 1.0))

    def calculate_overall_quality(self, brightness: float, contrast: float,
                                  sharpness: float) -> float:
        cfg = self.config
        if brightness < cfg.underexposed_below or brightness > cfg.overexposed_above:
            brightness_score = cfg.exposure_penalty_score
        else:
            brightness_score = 1.0

        quality = (brightness_score * cfg.brightness_weight +
                   contrast * cfg.contrast_weight +
                   sharpness * cfg.sharpness_weight)
        return float(min(max(quality, 0.0), 1.0))

    def calculate_dark_ratio(self, pixels: np.ndarray) -> float:
        """Share of near-black samples, a proxy for text and UI chrome"""
        return float(np.count_nonzero(pixels < self.config.dark_pixel_level) / pixels.size)
