"""Utility functions for image processing"""
from .image import (
    alpha_composite,
    decode_base64_bytes,
    decode_image_bytes,
    encode_data_url,
    fit_within,
    flip_image
)

__all__ = [
    'alpha_composite',
    'decode_base64_bytes',
    'decode_image_bytes',
    'encode_data_url',
    'fit_within',
    'flip_image'
]
