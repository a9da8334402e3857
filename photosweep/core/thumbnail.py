# core/thumbnail.py

import io
import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image

from photosweep.core.errors import DecodeError, ThumbnailError, UnsupportedFormatError
from photosweep.core.pixel_source import ImageSource, open_image, to_eight_bit
from photosweep.utils.image_utils import resize_maintain_aspect

logger = logging.getLogger(__name__)

# Pillow encoder name and save options per output format
_ENCODERS = {
    'jpeg': ('JPEG', lambda quality: {'quality': quality, 'optimize': True}),
    'jpg': ('JPEG', lambda quality: {'quality': quality, 'optimize': True}),
    'png': ('PNG', lambda quality: {'optimize': True}),
    'webp': ('WEBP', lambda quality: {'quality': quality}),
}


class ThumbnailGenerator:
    """
    Bounded-size preview renditions. Output is for display only and never
    feeds back into analysis.
    """

    def __init__(self, max_dimension: int = 300, jpeg_quality: int = 80):
        self.max_dimension = max_dimension
        self.jpeg_quality = jpeg_quality

    def generate(self, source: ImageSource, max_dim: Optional[int] = None,
                 filename: Optional[str] = None) -> bytes:
        """
        Render a JPEG preview no larger than max_dim on either side.

        Aspect ratio is preserved and small images are never upscaled.
        Raises ThumbnailError when the source cannot be rendered.
        """
        max_dim = max_dim or self.max_dimension
        if max_dim < 1:
            raise ValueError("max_dim must be positive")

        return self._render(source, (max_dim, max_dim), 'jpeg',
                            self.jpeg_quality, filename)

    def save(self, source: ImageSource, output_path: Union[str, Path],
             max_dim: Optional[int] = None, filename: Optional[str] = None) -> Path:
        """Write a preview to disk and return its path"""
        data = self.generate(source, max_dim, filename)
        output_path = Path(output_path)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(data)
        except OSError as e:
            raise ThumbnailError(f"Cannot write thumbnail {output_path}: {e}") from e
        return output_path

    def optimize(self, source: ImageSource, max_width: int = 1920,
                 max_height: int = 1080, fmt: str = 'jpeg', quality: int = 80,
                 filename: Optional[str] = None) -> bytes:
        """Re-encode an image inside a bounding box for web delivery"""
        return self._render(source, (max_width, max_height), fmt.lower(),
                            quality, filename)

    def _render(self, source: ImageSource, box, fmt: str, quality: int,
                filename: Optional[str]) -> bytes:
        encoder, options = _ENCODERS.get(fmt, _ENCODERS['jpeg'])
        keep_alpha = encoder != 'JPEG'

        try:
            with open_image(source, filename) as image:
                image.seek(0)
                has_alpha = image.mode in ('RGBA', 'LA', 'PA') or 'transparency' in image.info
                mode = 'RGBA' if keep_alpha and has_alpha else 'RGB'
                array = np.array(to_eight_bit(image).convert(mode))

            resized = resize_maintain_aspect(array, box)

            output = io.BytesIO()
            Image.fromarray(resized).save(output, format=encoder, **options(quality))
        except (DecodeError, UnsupportedFormatError,
                OSError, SyntaxError, ValueError, EOFError) as e:
            raise ThumbnailError(f"Cannot render preview: {e}") from e

        logger.debug("Rendered %s preview %dx%d", encoder,
                     resized.shape[1], resized.shape[0])
        return output.getvalue()
