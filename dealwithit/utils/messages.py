"""User-facing naming and messages."""

import re
from pathlib import PurePath

NORMAL_MODE = "NORMAL"
HEDGEHOG_MODE = "HEDGEHOG"

OUTPUT_SUFFIX = "-dealwithit.gif"

SUCCESS_MESSAGES = (
    "Deal with it!",
    "Looking sharp!",
    "Too cool for school.",
    "Another one? You're on fire!",
    "Unstoppable.",
    "Legendary.",
)
HEDGEHOG_MESSAGE = "Hello fellow hedgehog fan!"

_HEDGEHOG_PATTERN = re.compile(r"(hedgehog|posthog)", re.IGNORECASE)


def detect_mode(filename: str) -> str:
    """Files named after hedgehogs get the hedgehog treatment."""
    return HEDGEHOG_MODE if _HEDGEHOG_PATTERN.search(filename or "") else NORMAL_MODE


def get_success_message(success_count: int, mode: str = NORMAL_MODE) -> str:
    """Message for the n-th successful render (1-based); the last one repeats."""
    if mode == HEDGEHOG_MODE and success_count <= 1:
        return HEDGEHOG_MESSAGE
    index = min(max(success_count, 1), len(SUCCESS_MESSAGES)) - 1
    return SUCCESS_MESSAGES[index]


def generate_output_filename(input_filename: str) -> str:
    stem = PurePath(input_filename or "").stem or "image"
    return f"{stem}{OUTPUT_SUFFIX}"
