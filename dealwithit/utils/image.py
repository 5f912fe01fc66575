"""Image processing utilities.

This module provides utility functions for image processing operations,
including base64 encoding/decoding, whole-image transforms and alpha
compositing of BGRA sprites onto BGR frames.
"""

import cv2
import numpy as np
import base64
from typing import Tuple

class ImageProcessingError(Exception):
    """Base exception for image processing errors."""
    pass

class ImageDecodingError(ImageProcessingError):
    """Exception raised when image decoding fails."""
    pass

class ImageFormatError(ImageProcessingError):
    """Exception raised when image format is invalid."""
    pass

def decode_base64_bytes(base64_string: str) -> bytes:
    """Decode a base64 payload, optionally wrapped in a data URL.

    Args:
        base64_string: Base64 encoded string.
            Example formats:
            - "data:image/jpeg;base64,/9j/4AAQSkZ..."
            - "/9j/4AAQSkZ..." (without prefix)

    Returns:
        The raw bytes.

    Raises:
        ImageDecodingError: If base64 decoding fails.
    """
    # Remove data URL prefix if present
    if ';base64,' in base64_string:
        base64_string = base64_string.split(';base64,')[1]
    elif ',' in base64_string:
        # Fallback: split by comma if the specific delimiter isn't found
        base64_string = base64_string.split(',')[1]

    try:
        return base64.b64decode(base64_string, validate=True)
    except (ValueError, TypeError) as e:
        raise ImageDecodingError(f"Failed to decode base64 string: {str(e)}")

def decode_image_bytes(image_bytes: bytes) -> np.ndarray:
    """Decode encoded image bytes (PNG, JPEG, ...) to a BGR array.

    Raises:
        ImageFormatError: If the bytes cannot be read as an image.
    """
    if not image_bytes:
        raise ImageFormatError("Empty image data")

    nparr = np.frombuffer(image_bytes, np.uint8)
    image = cv2.imdecode(nparr, cv2.IMREAD_COLOR)
    if image is None:
        raise ImageFormatError("Failed to decode image data")

    return image

def encode_data_url(data: bytes, mime_type: str = "image/gif") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"

def flip_image(image: np.ndarray, horizontal: bool = False, vertical: bool = False) -> np.ndarray:
    """Mirror an image along one or both axes."""
    if horizontal and vertical:
        return cv2.flip(image, -1)
    if horizontal:
        return cv2.flip(image, 1)
    if vertical:
        return cv2.flip(image, 0)
    return image

def fit_within(width: int, height: int, max_dimension: int) -> Tuple[int, int]:
    """Scale (width, height) so the larger side equals ``max_dimension``.

    The aspect ratio is preserved and neither side drops below one pixel.
    """
    if width >= height:
        return max_dimension, max(1, int(round(height * max_dimension / width)))
    return max(1, int(round(width * max_dimension / height))), max_dimension

def alpha_composite(base: np.ndarray, sprite: np.ndarray, x: int, y: int) -> np.ndarray:
    """Alpha-blend a BGRA ``sprite`` onto BGR ``base`` in place.

    The sprite's top-left corner lands at (x, y); any part outside the base
    is clipped.
    """
    base_height, base_width = base.shape[:2]
    sprite_height, sprite_width = sprite.shape[:2]

    x0, y0 = max(x, 0), max(y, 0)
    x1, y1 = min(x + sprite_width, base_width), min(y + sprite_height, base_height)
    if x0 >= x1 or y0 >= y1:
        return base

    region = sprite[y0 - y:y1 - y, x0 - x:x1 - x]
    alpha = region[..., 3:4].astype(np.float32) / 255.0
    target = base[y0:y1, x0:x1].astype(np.float32)
    blended = alpha * region[..., :3].astype(np.float32) + (1.0 - alpha) * target
    base[y0:y1, x0:x1] = np.clip(np.rint(blended), 0, 255).astype(np.uint8)
    return base
