from __future__ import annotations

from collections import deque

import cv2
import numpy as np
import pytest


class FakeDetector:
    """Stands in for the landmark model; returns canned faces or raises."""

    def __init__(self, faces=None, error: Exception | None = None):
        self.faces = faces or []
        self.error = error
        self.calls = 0

    def estimate_faces(self, image):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.faces


class FakeChannel:
    """Records submitted messages and replays queued worker messages."""

    def __init__(self):
        self.submitted = []
        self.cancelled = []
        self.outbox = deque()
        self.alive = True
        self.closed = False
        self.close_timeout = None

    def is_alive(self) -> bool:
        return self.alive

    def submit(self, message) -> None:
        self.submitted.append(message)

    def cancel(self, job_id: str) -> None:
        self.cancelled.append(job_id)

    def receive(self, timeout: float = 0.0):
        return self.outbox.popleft() if self.outbox else None

    def push(self, message) -> None:
        self.outbox.append(message)

    def close(self, timeout: float = 5.0) -> None:
        self.closed = True
        self.close_timeout = timeout


def make_image_bytes(width: int = 400, height: int = 300, ext: str = ".png") -> bytes:
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:, :, 0] = np.linspace(0, 255, width, dtype=np.uint8)[None, :]
    image[:, :, 1] = np.linspace(0, 255, height, dtype=np.uint8)[:, None]
    image[:, :, 2] = 200
    ok, buffer = cv2.imencode(ext, image)
    assert ok
    return buffer.tobytes()


@pytest.fixture
def image_bytes() -> bytes:
    return make_image_bytes()


@pytest.fixture
def fake_channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def one_face():
    # left eye, right eye, nose tip in natural image coordinates
    return [[(160.0, 120.0), (240.0, 120.0), (200.0, 150.0)]]
