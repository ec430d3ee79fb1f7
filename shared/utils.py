"""Shared utility functions for the property survey backend."""

import hashlib
import io
import logging
import mimetypes
import random
import time
from PIL import Image, UnidentifiedImageError
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

# Content types the legacy uploads directory is known to contain
CONTENT_TYPES = {
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.pdf': 'application/pdf',
    '.doc': 'application/msword',
    '.docx': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
}


class CorruptedImageError(Exception):
    """Raised when image data is corrupted and cannot be processed."""
    pass


def verify_image(image_data, filename=None):
    """Check that uploaded bytes decode as an image.

    Args:
        image_data: Raw file bytes
        filename: Original name, used in error messages only

    Raises:
        CorruptedImageError: If Pillow cannot identify or verify the data
    """
    source = f"'{filename}'" if filename else f"image data ({len(image_data or b'')} bytes)"
    try:
        with Image.open(io.BytesIO(image_data)) as img:
            img.verify()
    except UnidentifiedImageError as e:
        logger.warning(f"Unsupported or corrupted image {source}: {e}")
        raise CorruptedImageError(f"Unsupported or corrupted image: {filename or 'upload'}") from e
    except (OSError, ValueError, SyntaxError) as e:
        logger.warning(f"Corrupted image {source}: {e}")
        raise CorruptedImageError(f"Corrupted image: {filename or 'upload'}") from e


def guess_content_type(filename):
    """Content type for a filename, falling back to application/octet-stream."""
    ext = ('.' + filename.rsplit('.', 1)[-1].lower()) if '.' in filename else ''
    if ext in CONTENT_TYPES:
        return CONTENT_TYPES[ext]
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or 'application/octet-stream'


def unique_object_name(folder, filename):
    """Bucket object name: ``<folder>/<epoch millis>_<random>_<safe filename>``."""
    safe_name = secure_filename(filename or '') or 'upload'
    stamp = int(time.time() * 1000)
    return f"{folder}/{stamp}_{random.randint(0, 10 ** 9)}_{safe_name}"


def compute_file_hash(data):
    """SHA-256 hex digest of uploaded bytes, used in upload log lines."""
    if not isinstance(data, bytes):
        return None
    return hashlib.sha256(data).hexdigest()


def split_csv(value):
    """Split a comma separated column into trimmed, non-empty items."""
    if isinstance(value, list):
        return [str(item).strip() for item in value if item and str(item).strip()]
    if not value:
        return []
    return [item.strip() for item in str(value).split(',') if item.strip()]
