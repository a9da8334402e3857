# security/input_validation.py

from pathlib import Path
import logging
import os
import re

from photosweep.core.errors import UnsupportedFormatError

logger = logging.getLogger(__name__)


class SecurityValidator:
    """
    Validate inputs for security
    """

    ALLOWED_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.bmp', '.gif', '.tiff', '.tif', '.webp'}

    @staticmethod
    def is_supported_format(filename: str) -> bool:
        """Check the file extension against the accepted image formats"""
        return Path(str(filename)).suffix.lower() in SecurityValidator.ALLOWED_EXTENSIONS

    @staticmethod
    def require_supported_format(filename: str):
        """Raise UnsupportedFormatError unless the extension is accepted"""
        if not SecurityValidator.is_supported_format(filename):
            suffix = Path(str(filename)).suffix or '<none>'
            raise UnsupportedFormatError(
                f"Unsupported file extension {suffix!r} for {Path(str(filename)).name}"
            )

    @staticmethod
    def sanitize_filename(filename: str) -> str:
        """
        Sanitize filename to prevent injection attacks
        """
        # Remove path separators
        filename = filename.replace('/', '_').replace('\\', '_')

        # Remove special characters
        filename = re.sub(r'[^\w\s.-]', '', filename)

        # Limit length
        if len(filename) > 255:
            name, ext = os.path.splitext(filename)
            filename = name[:250] + ext

        return filename or 'unnamed'

    @staticmethod
    def validate_directory(directory: str, allow_system_dirs: bool = False) -> bool:
        """
        Validate directory path
        """
        try:
            dir_path = Path(directory).resolve()
        except OSError as e:
            logger.warning("Directory validation error for %s: %s", directory, e)
            return False

        # Check if directory exists
        if not dir_path.is_dir():
            return False

        # Prevent access to system directories
        if not allow_system_dirs:
            system_dirs = {
                Path('/etc'), Path('/sys'), Path('/proc'),
                Path('C:\\Windows'), Path('C:\\Program Files')
            }

            for sys_dir in system_dirs:
                if sys_dir.exists() and dir_path.is_relative_to(sys_dir):
                    return False

        # Check permissions
        return os.access(dir_path, os.R_OK)
