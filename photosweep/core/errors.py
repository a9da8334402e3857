# core/errors.py

class PhotoSweepError(Exception):
    """Base class for photosweep errors"""
    reason = "PhotoSweepError"


class UnsupportedFormatError(PhotoSweepError):
    """Container extension or signature is not an accepted image format"""
    reason = "UnsupportedFormat"


class DecodeError(PhotoSweepError):
    """Image bytes could not be decoded"""
    reason = "DecodeError"


class ThumbnailError(PhotoSweepError):
    """Preview rendition could not be produced"""
    reason = "ThumbnailError"


class HashError(PhotoSweepError):
    """Content hash could not be computed; the photo cannot be deduplicated"""
    reason = "HashError"


class InvalidQueryError(PhotoSweepError, ValueError):
    """Catalog query parameter outside its allowed values"""
    reason = "InvalidQuery"


class BatchLimitError(PhotoSweepError, ValueError):
    """Too many files submitted in a single batch"""
    reason = "BatchLimit"


class PhotoNotFoundError(PhotoSweepError, KeyError):
    """No photo with the given id (and status) exists for the user"""
    reason = "PhotoNotFound"

    def __str__(self):
        return Exception.__str__(self)
