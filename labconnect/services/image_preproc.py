"""
Resume image preparation for the model calls.

The upload is decoded to check that it really is an image, downscaled so
its longest side fits IMAGE_MAX_SIDE, and re-encoded as JPEG. The model
requests label the data URL as image/jpeg, so the bytes sent always match.
"""
from typing import Optional
import base64
import logging

import cv2
import numpy as np

from labconnect.config import settings
from labconnect.services.errors import ImageReadError, ValidationError

logger = logging.getLogger(__name__)


# Formats OpenCV decodes; GIF and HEIC are not among them
SUPPORTED_IMAGE_TYPES = ("image/png", "image/jpeg", "image/webp", "image/bmp", "image/tiff")
SUPPORTED_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp", ".bmp", ".tif", ".tiff")
# Value of the picker's accept attribute
IMAGE_ACCEPT = ",".join(SUPPORTED_IMAGE_TYPES + SUPPORTED_EXTENSIONS)
UNSUPPORTED_MESSAGE = "Please upload a PNG, JPEG, WebP, BMP or TIFF image"


def is_image_upload(content_type: Optional[str], filename: Optional[str]) -> bool:
    """Mirror of the picker's accept filter: a supported image type or extension."""
    ctype = (content_type or "").split(";")[0].strip().lower()
    if ctype in SUPPORTED_IMAGE_TYPES:
        return True
    if ctype.startswith("image/"):
        return False
    name = (filename or "").lower()
    return name.endswith(SUPPORTED_EXTENSIONS)


def decode_image(content: bytes):
    """Decode raw upload bytes into a BGR array; raise ImageReadError if unreadable."""
    if not content:
        raise ImageReadError("Failed to read image")
    buf = np.frombuffer(content, dtype=np.uint8)
    img = cv2.imdecode(buf, cv2.IMREAD_COLOR)
    if img is None:
        raise ImageReadError("Error reading image file")
    return img


def fit_image(img, max_side: int):
    """Downscale so the longest side is at most max_side; never upscale."""
    if not max_side or max_side <= 0:
        return img
    h, w = img.shape[:2]
    longest = max(h, w)
    if longest <= max_side:
        return img
    scale = max_side / float(longest)
    size = (max(1, int(round(w * scale))), max(1, int(round(h * scale))))
    return cv2.resize(img, size, interpolation=cv2.INTER_AREA)


def encode_resume_image(
    content: bytes,
    max_side: Optional[int] = None,
    quality: Optional[int] = None,
) -> str:
    """Return the upload as base64 JPEG, ready for a data URL."""
    img = decode_image(content)
    img = fit_image(img, settings.IMAGE_MAX_SIDE if max_side is None else max_side)
    q = settings.IMAGE_JPEG_QUALITY if quality is None else quality
    ok, encoded = cv2.imencode(".jpg", img, [int(cv2.IMWRITE_JPEG_QUALITY), int(q)])
    if not ok:
        raise ImageReadError("Failed to read image")
    h, w = img.shape[:2]
    logger.debug("Prepared resume image %dx%d (%d bytes)", w, h, len(encoded))
    return base64.b64encode(encoded.tobytes()).decode("ascii")


def read_upload(content: Optional[bytes], content_type: Optional[str], filename: Optional[str]) -> str:
    """Validate an uploaded resume and return its base64 JPEG encoding."""
    if not content and not filename:
        raise ValidationError("Please upload an image")
    if not is_image_upload(content_type, filename):
        raise ValidationError(UNSUPPORTED_MESSAGE)
    return encode_resume_image(content or b"")
