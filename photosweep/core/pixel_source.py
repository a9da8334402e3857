# core/pixel_source.py

"""
Decode image containers into grayscale pixel buffers.

All analyzers read pixels through decode(); Pillow errors are translated
into DecodeError or UnsupportedFormatError here.
"""

import io
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union

import numpy as np
from PIL import Image

from photosweep.core.errors import DecodeError, UnsupportedFormatError
from photosweep.security.input_validation import SecurityValidator

logger = logging.getLogger(__name__)

# Larger images raise DecompressionBombError
Image.MAX_IMAGE_PIXELS = 100_000_000  # 100MP limit

ImageSource = Union[bytes, bytearray, str, Path, BinaryIO]

# Pillow format name -> accepted container name
SIGNATURE_FORMATS = {
    'JPEG': 'jpeg',
    'MPO': 'jpeg',  # multi-picture JPEG written by many phones
    'PNG': 'png',
    'WEBP': 'webp',
    'GIF': 'gif',
    'BMP': 'bmp',
    'TIFF': 'tiff',
}

# EXIF orientation tag
_ORIENTATION_TAG = 0x0112

# Pillow modes whose samples exceed 8 bits; 16-bit PNG opens as "I"
INTEGER_DEPTH_MODES = ('I;16', 'I;16L', 'I;16B', 'I;16N', 'I')


@dataclass(frozen=True)
class PixelBuffer:
    """Single-channel intensity samples in row-major order"""
    pixels: np.ndarray
    width: int
    height: int
    format: Optional[str] = None

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError("PixelBuffer dimensions must be positive")
        if self.pixels.shape != (self.height, self.width):
            raise ValueError(
                f"Pixel array shape {self.pixels.shape} does not match "
                f"{self.height}x{self.width}"
            )

    def __len__(self) -> int:
        return self.width * self.height

    @classmethod
    def from_array(cls, array: np.ndarray, format: Optional[str] = None) -> 'PixelBuffer':
        """Wrap a 2-D intensity array, clipping to the uint8 range"""
        array = np.asarray(array)
        if array.ndim != 2:
            raise ValueError("PixelBuffer needs a 2-D grayscale array")
        pixels = np.clip(array, 0, 255).astype(np.uint8)
        return cls(pixels=pixels, width=pixels.shape[1],
                   height=pixels.shape[0], format=format)


@dataclass(frozen=True)
class ImageMetadata:
    """Container-level facts about an image"""
    format: str
    width: int
    height: int
    mode: str
    has_alpha: bool
    orientation: Optional[int] = None


def is_supported_format(filename: str) -> bool:
    """Check whether a filename carries an accepted image extension"""
    return SecurityValidator.is_supported_format(filename)


def _source_name(source: ImageSource, filename: Optional[str]) -> Optional[str]:
    if filename is not None:
        return str(filename)
    if isinstance(source, (str, Path)):
        return str(source)
    if isinstance(source, (bytes, bytearray)):
        return None
    name = getattr(source, 'name', None)
    return name if isinstance(name, str) else None


@contextmanager
def open_image(source: ImageSource, filename: Optional[str] = None) -> Iterator[Image.Image]:
    """
    Open an image after extension and signature checks.

    Raises UnsupportedFormatError for formats outside the accepted set and
    DecodeError for anything Pillow cannot identify. The underlying file is
    closed when the context exits.
    """
    name = _source_name(source, filename)
    if name is not None:
        SecurityValidator.require_supported_format(name)

    if isinstance(source, (bytes, bytearray)):
        if not source:
            raise DecodeError(f"Empty image data for {name or '<bytes>'}")
        fp = io.BytesIO(source)
    else:
        fp = source

    try:
        image = Image.open(fp)
    except FileNotFoundError:
        raise
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Cannot identify image {name or '<bytes>'}: {e}") from e

    with image:
        container = SIGNATURE_FORMATS.get(image.format or '')
        if container is None:
            raise UnsupportedFormatError(
                f"Unsupported image signature {image.format!r} for {name or '<bytes>'}"
            )
        yield image


def to_eight_bit(image: Image.Image) -> Image.Image:
    """
    Rescale high bit-depth samples into an 8-bit 'L' image.

    16-bit integer modes keep their top byte. Float images are taken as
    [0, 1] when their peak is at most 1, otherwise they are scaled by
    their peak. Other modes are returned unchanged.
    """
    if image.mode in INTEGER_DEPTH_MODES:
        samples = np.clip(np.asarray(image), 0, 65535).astype(np.uint32)
        return Image.fromarray((samples >> 8).astype(np.uint8))

    if image.mode == 'F':
        samples = np.nan_to_num(np.asarray(image, dtype=np.float64))
        peak = float(samples.max()) if samples.size else 0.0
        scale = 255.0 if peak <= 1.0 else 255.0 / peak
        return Image.fromarray(np.clip(samples * scale, 0, 255).astype(np.uint8))

    return image


def decode(source: ImageSource, filename: Optional[str] = None) -> PixelBuffer:
    """
    Decode an image into a grayscale PixelBuffer.

    Args:
        source: Raw bytes, a filesystem path or a binary file object
        filename: Original filename, used for the extension check when
                  source carries no name of its own

    Returns:
        PixelBuffer with luminance samples (ITU-R 601-2 weights)
    """
    with open_image(source, filename) as image:
        container = SIGNATURE_FORMATS[image.format]
        try:
            image.seek(0)  # first frame of animated GIF/WEBP
            gray = to_eight_bit(image).convert('L')
            pixels = np.array(gray, dtype=np.uint8)
        except (OSError, SyntaxError, ValueError, EOFError,
                Image.DecompressionBombError) as e:
            raise DecodeError(f"Cannot decode {container} image: {e}") from e

    if pixels.ndim != 2 or pixels.size == 0:
        raise DecodeError("Decoded image has no pixels")

    return PixelBuffer(pixels=pixels, width=pixels.shape[1],
                       height=pixels.shape[0], format=container)


def read_metadata(source: ImageSource, filename: Optional[str] = None) -> ImageMetadata:
    """Read container metadata without decoding the pixel data"""
    with open_image(source, filename) as image:
        try:
            exif = image.getexif()
        except (OSError, SyntaxError, ValueError) as e:
            logger.debug("Ignoring unreadable EXIF block: %s", e)
            exif = {}

        return ImageMetadata(
            format=SIGNATURE_FORMATS[image.format],
            width=image.width,
            height=image.height,
            mode=image.mode,
            has_alpha=image.mode in ('RGBA', 'LA', 'PA') or 'transparency' in image.info,
            orientation=exif.get(_ORIENTATION_TAG),
        )
