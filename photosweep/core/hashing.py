# core/hashing.py

import hashlib
import logging
from pathlib import Path
from typing import BinaryIO, Optional, Union

import imagehash
from PIL import Image

from photosweep.core.errors import DecodeError, HashError, UnsupportedFormatError
from photosweep.core.pixel_source import ImageSource, PixelBuffer, decode

logger = logging.getLogger(__name__)


class ContentHasher:
    """
    Exact-duplicate fingerprint: cryptographic digest of the raw file bytes
    """

    def __init__(self, algorithm: str = "sha256", chunk_size: int = 8192):
        if algorithm not in hashlib.algorithms_available:
            raise ValueError(f"Unknown hash algorithm: {algorithm}")
        self.algorithm = algorithm
        self.chunk_size = chunk_size

    def new(self):
        """Return a hashlib object for incremental feeding"""
        return hashlib.new(self.algorithm)

    def hash_bytes(self, data: bytes) -> str:
        digest = self.new()
        digest.update(data)
        return digest.hexdigest()

    def hash_stream(self, stream: BinaryIO) -> str:
        """Hash a binary stream chunk by chunk"""
        digest = self.new()
        try:
            for chunk in iter(lambda: stream.read(self.chunk_size), b""):
                digest.update(chunk)
        except OSError as e:
            raise HashError(f"Cannot read stream for hashing: {e}") from e
        return digest.hexdigest()

    def hash_file(self, file_path: Union[str, Path]) -> str:
        """Compute the digest of a file without loading it whole"""
        try:
            with open(file_path, "rb") as f:
                return self.hash_stream(f)
        except OSError as e:
            raise HashError(f"Cannot hash {file_path}: {e}") from e

    def hash(self, source: Union[bytes, bytearray, str, Path, BinaryIO]) -> str:
        if isinstance(source, (bytes, bytearray)):
            return self.hash_bytes(bytes(source))
        if isinstance(source, (str, Path)):
            return self.hash_file(source)
        return self.hash_stream(source)


class PerceptualHasher:
    """
    Similarity fingerprint: average hash over a fill-resized 8x8 grid.

    Survives recompression and small tonal changes; cropping and rotation
    produce a different hash.
    """

    def __init__(self, hash_size: int = 8):
        self.hash_size = hash_size

    @property
    def bits(self) -> int:
        return self.hash_size * self.hash_size

    def hash(self, buffer: PixelBuffer) -> str:
        """
        Compute the average hash of a grayscale buffer.

        The grid is resized without preserving aspect ratio; each bit is 1
        when its cell is brighter than the grid mean (row-major order).
        """
        image = Image.fromarray(buffer.pixels)
        ahash = imagehash.average_hash(image, hash_size=self.hash_size)
        return ''.join('1' if bit else '0' for bit in ahash.hash.flatten())

    def hash_source(self, source: ImageSource,
                    filename: Optional[str] = None) -> Optional[str]:
        """Decode and hash; returns None when the image cannot be decoded"""
        try:
            return self.hash(decode(source, filename))
        except (DecodeError, UnsupportedFormatError) as e:
            name = filename or (str(source) if isinstance(source, (str, Path)) else '<bytes>')
            logger.warning("Perceptual hash unavailable for %s: %s", name, e)
            return None

    @staticmethod
    def hamming_distance(hash1: str, hash2: str) -> int:
        """
        Number of differing bits between two hash strings.

        Lower distance = more similar images.
        """
        if len(hash1) != len(hash2):
            raise ValueError("Perceptual hashes differ in length")
        return sum(a != b for a, b in zip(hash1, hash2))

    def is_similar(self, hash1: Optional[str], hash2: Optional[str],
                   max_distance: int = 5) -> bool:
        if not hash1 or not hash2:
            return False
        return self.hamming_distance(hash1, hash2) <= max_distance
