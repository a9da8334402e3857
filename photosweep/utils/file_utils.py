"""
File operation utilities
"""

from pathlib import Path
from typing import List

from photosweep.security.input_validation import SecurityValidator

def get_image_files(directory: str, recursive: bool = True) -> List[str]:
    """Get all image files in directory, sorted by path"""
    path = Path(directory)
    candidates = path.rglob('*') if recursive else path.glob('*')

    image_files = {
        f for f in candidates
        if f.is_file() and SecurityValidator.is_supported_format(f.name)
    }

    return [str(f) for f in sorted(image_files)]

def format_file_size(size_bytes: int) -> str:
    """Format file size in human readable format"""
    if size_bytes == 0:
        return "0 B"

    size = float(size_bytes)
    for unit in ['B', 'KB', 'MB']:
        if size < 1024.0:
            return f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{size:.1f} GB"
